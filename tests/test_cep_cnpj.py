import os
from unittest.mock import patch

os.environ['DATABASE_URL'] = 'sqlite:///:memory:'

import pytest
import requests

from app import app, db
from app.services.cep import consultar_cep, mapear_endereco
from app.services.cnpj import consultar_cnpj, mapear_para_form
from app.services.exceptions import IntegracaoExternaError, NotFoundError, ValidationError


def setup_module(module):
    with app.app_context():
        app.config['WTF_CSRF_ENABLED'] = False
        app.config['LOGIN_DISABLED'] = True
        db.drop_all()
        db.create_all()


class DummyResponse:
    def __init__(self, status_code, json_data=None):
        self.status_code = status_code
        self._json = json_data if json_data is not None else {}

    def json(self):
        return self._json


VIACEP = {
    'cep': '80010-000',
    'logradouro': 'Rua XV de Novembro',
    'complemento': 'lado par',
    'bairro': 'Centro',
    'localidade': 'Curitiba',
    'uf': 'PR',
}


def test_mapear_endereco_separa_tipo_do_nome():
    endereco = mapear_endereco(VIACEP)
    assert endereco['tipo'] == 'Rua'
    assert endereco['nome'] == 'XV de Novembro'
    assert endereco['localidade'] == 'Curitiba'
    assert mapear_endereco({})['tipo'] == ''


def test_consultar_cep_viacep():
    with app.app_context():
        app.config['CEP_API_BASE_URL'] = None
        app.config['CEP_API_TOKEN'] = None
        with patch('app.services.cep.requests.get', return_value=DummyResponse(200, VIACEP)) as get:
            endereco = consultar_cep('80010-000')
        assert get.call_args[0][0] == 'https://viacep.com.br/ws/80010000/json/'
        assert endereco['uf'] == 'PR'


def test_consultar_cep_base_configurada_exige_token():
    with app.app_context():
        app.config['CEP_API_BASE_URL'] = 'https://cep.example.com/v1/'
        app.config['CEP_API_TOKEN'] = 'tok'
        try:
            resposta = DummyResponse(200, [{'street': 'Avenida Paulista', 'city': 'Sao Paulo', 'state': 'SP'}])
            with patch('app.services.cep.requests.get', return_value=resposta) as get:
                endereco = consultar_cep('01310100')
            assert get.call_args[0][0] == 'https://cep.example.com/v1/01310100'
            assert get.call_args[1]['headers']['Authorization'] == 'Bearer tok'
            assert endereco['tipo'] == 'Avenida'
            assert endereco['localidade'] == 'Sao Paulo'
        finally:
            app.config['CEP_API_BASE_URL'] = None
            app.config['CEP_API_TOKEN'] = None


def test_consultar_cep_erros():
    with app.app_context():
        with pytest.raises(ValidationError):
            consultar_cep('123')
        with patch('app.services.cep.requests.get', return_value=DummyResponse(200, {'erro': True})):
            with pytest.raises(NotFoundError):
                consultar_cep('99999999')
        with patch('app.services.cep.requests.get', side_effect=requests.ConnectionError('down')):
            with pytest.raises(IntegracaoExternaError):
                consultar_cep('80010000')


def test_api_cep():
    client = app.test_client()
    with patch('app.services.cep.requests.get', return_value=DummyResponse(200, VIACEP)):
        resp = client.get('/api/cep/80010-000')
    data = resp.get_json()
    assert resp.status_code == 200
    assert data['success'] is True
    assert data['bairro'] == 'Centro'

    assert client.get('/api/cep/123').status_code == 400
    with patch('app.services.cep.requests.get', return_value=DummyResponse(503)):
        assert client.get('/api/cep/80010000').status_code == 503


BRASILAPI = {
    'cnpj': '11222333000181',
    'razao_social': 'EMPRESA TESTE LTDA',
    'nome_fantasia': 'TESTE',
    'data_inicio_atividade': '2015-06-01',
    'ddd_telefone_1': '(41) 3333-4444',
    'cep': '80010000',
    'descricao_tipo_de_logradouro': 'RUA',
    'logradouro': 'XV DE NOVEMBRO',
    'numero': '100',
    'bairro': 'CENTRO',
    'municipio': 'CURITIBA',
    'uf': 'PR',
    'capital_social': 150000.5,
    'qsa': [{'nome_socio': 'FULANO DE TAL', 'qualificacao_socio': 'Socio-Administrador'}],
}


def test_mapear_para_form():
    dados = mapear_para_form(BRASILAPI)
    assert dados['razao_social'] == 'EMPRESA TESTE LTDA'
    assert dados['data_abertura'] == '2015-06-01'
    assert dados['telefone'] == '4133334444'
    assert dados['endereco_tipo'] == 'RUA'
    assert dados['capital_social_centavos'] == 15000050
    assert dados['socios'] == [{'nome': 'FULANO DE TAL', 'qualificacao': 'Socio-Administrador'}]


def test_consultar_cnpj_usa_receitaws_quando_brasilapi_falha():
    receitaws = {'status': 'OK', 'cnpj': '11.222.333/0001-81', 'nome': 'EMPRESA RWS', 'abertura': '01/06/2015'}
    with app.app_context():
        with patch('app.services.cnpj.requests.get', side_effect=[DummyResponse(500), DummyResponse(200, receitaws)]) as get:
            dados = consultar_cnpj('11.222.333/0001-81')
        assert get.call_count == 2
        assert dados['razao_social'] == 'EMPRESA RWS'
        assert dados['data_abertura'] == '2015-06-01'
        assert dados['cnpj'] == '11222333000181'


def test_consultar_cnpj_invalido_ou_indisponivel():
    with app.app_context():
        with pytest.raises(ValidationError):
            consultar_cnpj('11222333000100')
        with patch('app.services.cnpj.requests.get', return_value=DummyResponse(404)):
            assert consultar_cnpj('11222333000181') is None


def test_api_cnpj():
    client = app.test_client()
    with patch('app.services.cnpj.requests.get', return_value=DummyResponse(200, BRASILAPI)):
        resp = client.get('/api/cnpj/11222333000181')
    assert resp.status_code == 200
    assert resp.get_json()['item']['municipio'] == 'CURITIBA'

    with patch('app.services.cnpj.requests.get', return_value=DummyResponse(404)):
        assert client.get('/api/cnpj/11222333000181').status_code == 404
    assert client.get('/api/cnpj/123').status_code == 400
