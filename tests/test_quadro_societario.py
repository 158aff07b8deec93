import os
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.exc import SQLAlchemyError

os.environ['DATABASE_URL'] = 'sqlite:///:memory:'

from app import app, db
from app.models.tables import Empresa, EmpresaHistorico, EmpresaSocio, Socio, SocioHistorico
from app.services.empresas import criar_empresa
from app.services.exceptions import MENSAGEM_SOMA_PARTICIPACOES, ConflictError, NotFoundError
from app.services.quadro_societario import processar_quadro_societario, salvar_quadro_societario
from app.services.socios import atualizar_socio, desligar_socio

import pytest


def setup_module(module):
    with app.app_context():
        app.config['WTF_CSRF_ENABLED'] = False
        app.config['LOGIN_DISABLED'] = True
        db.drop_all()
        db.create_all()


def _nova_empresa(codigo, cnpj):
    empresa = criar_empresa({'codigo': codigo, 'cnpj': cnpj, 'razao_social': f'Empresa {codigo}'})
    return empresa.id


def _socio(cpf, nome, participacao, **extra):
    return {'cpf': cpf, 'nome': nome, 'participacao': participacao, **extra}


def test_quadro_completo_gravado():
    with app.app_context():
        empresa_id = _nova_empresa('100', '11222333000181')
        resultado = salvar_quadro_societario(empresa_id, [
            _socio('52998224725', 'Ana', 40),
            _socio('11144477735', 'Bruno', '35'),
            _socio('22233344405', 'Carla', '25,00', municipio='Curitiba', uf='pr'),
        ])
        assert resultado['success'] is True
        assert resultado['socios'] == 3
        assert resultado['total'] == '100.00'

        vinculos = EmpresaSocio.query.filter_by(empresa_id=empresa_id).all()
        assert sorted(v.participacao_percent for v in vinculos) == [Decimal('25.00'), Decimal('35.00'), Decimal('40.00')]
        carla = Socio.query.filter_by(cpf='22233344405').one()
        assert carla.uf == 'PR'


def test_soma_diferente_de_100_nao_grava_nada():
    with app.app_context():
        empresa_id = _nova_empresa('101', '11444777000161')
        socios_antes = Socio.query.count()
        historico_antes = SocioHistorico.query.count()

        resultado = salvar_quadro_societario(empresa_id, [
            _socio('33344455566', 'Daniel', 40),
            _socio('44455566677', 'Eva', 35),
            _socio('55566677788', 'Fabio', '24.99'),
        ])
        assert resultado == {'success': False, 'error': MENSAGEM_SOMA_PARTICIPACOES, 'total': '99.99'}
        assert Socio.query.count() == socios_antes
        assert SocioHistorico.query.count() == historico_antes
        assert EmpresaSocio.query.filter_by(empresa_id=empresa_id).count() == 0


def test_tres_tercos_rejeitados():
    with app.app_context():
        empresa_id = _nova_empresa('102', '22333444000155')
        resultado = salvar_quadro_societario(empresa_id, [
            _socio('66677788899', 'G', '33.33'),
            _socio('77788899900', 'H', '33.33'),
            _socio('88899900011', 'I', '33.33'),
        ])
        assert resultado['success'] is False
        assert resultado['error'] == MENSAGEM_SOMA_PARTICIPACOES


def test_upsert_por_cpf_mantem_um_unico_socio():
    with app.app_context():
        empresa_id = _nova_empresa('103', '33444555000166')
        assert salvar_quadro_societario(empresa_id, [_socio('11111111111', 'Nome A', 100)])['success']
        assert salvar_quadro_societario(empresa_id, [_socio('111.111.111-11', 'Nome B', 100)])['success']

        socios = Socio.query.filter_by(cpf='11111111111').all()
        assert len(socios) == 1
        assert socios[0].nome == 'Nome B'


def test_upsert_sobrescreve_campos_ausentes():
    with app.app_context():
        empresa_id = _nova_empresa('104', '44555666000177')
        salvar_quadro_societario(empresa_id, [_socio('12312312312', 'Joana', 100, rg='123', bairro='Centro')])
        salvar_quadro_societario(empresa_id, [_socio('12312312312', 'Joana', 100)])

        socio = Socio.query.filter_by(cpf='12312312312').one()
        assert socio.rg is None
        assert socio.bairro is None


def test_historico_cresce_a_cada_submissao_mesmo_identica():
    with app.app_context():
        empresa_id = _nova_empresa('105', '55666777000188')
        for _ in range(3):
            assert salvar_quadro_societario(empresa_id, [_socio('98798798798', 'Kleber', 100)])['success']

        socio = Socio.query.filter_by(cpf='98798798798').one()
        snapshots = SocioHistorico.query.filter_by(socio_id=socio.id).all()
        assert len(snapshots) == 3
        assert all(s.empresa_id == empresa_id for s in snapshots)
        assert all(s.participacao_percent == Decimal('100.00') for s in snapshots)
        assert all(s.origem == 'company_form' for s in snapshots)
        # um snapshot da empresa na criacao e um por submissao
        assert EmpresaHistorico.query.filter_by(empresa_id=empresa_id).count() == 4


def test_vinculo_unico_por_par_empresa_socio():
    with app.app_context():
        empresa_id = _nova_empresa('106', '66777888000199')
        salvar_quadro_societario(empresa_id, [_socio('45645645645', 'Lia', 30), _socio('78978978978', 'Mauro', 70)])
        salvar_quadro_societario(empresa_id, [_socio('45645645645', 'Lia', 45), _socio('78978978978', 'Mauro', 55)])

        socio = Socio.query.filter_by(cpf='45645645645').one()
        vinculos = EmpresaSocio.query.filter_by(empresa_id=empresa_id, socio_id=socio.id).all()
        assert len(vinculos) == 1
        assert vinculos[0].participacao_percent == Decimal('45.00')


def test_quadro_vazio_nao_chama_reconciliacao():
    with app.app_context():
        empresa_id = _nova_empresa('107', '77888999000100')
        with patch('app.services.quadro_societario.validar_participacoes') as validar:
            resultado = salvar_quadro_societario(empresa_id, [], dados_empresa={'nome_fantasia': 'Fantasia 107'})
        validar.assert_not_called()
        assert resultado['success'] is True
        assert resultado['total'] is None
        assert db.session.get(Empresa, empresa_id).nome_fantasia == 'Fantasia 107'


def test_cpf_repetido_no_quadro_rejeita_lote():
    with app.app_context():
        empresa_id = _nova_empresa('108', '88999000000111')
        resultado = salvar_quadro_societario(empresa_id, [
            _socio('13513513513', 'Nina', 50),
            _socio('135.135.135-13', 'Nina de novo', 50),
        ])
        assert resultado['success'] is False
        assert 'mais de uma vez' in resultado['error']
        assert Socio.query.filter_by(cpf='13513513513').count() == 0


def test_cpf_invalido_e_nome_ausente():
    with app.app_context():
        empresa_id = _nova_empresa('109', '99000111000122')
        resultado = salvar_quadro_societario(empresa_id, [_socio('123', 'Curto', 100)])
        assert resultado['success'] is False
        assert 'CPF' in resultado['error']

        resultado = salvar_quadro_societario(empresa_id, [_socio('24624624624', '', 100)])
        assert resultado['success'] is False
        assert 'Nome' in resultado['error']


def test_socio_ausente_em_nova_submissao_permanece():
    with app.app_context():
        empresa_id = _nova_empresa('110', '10111222000133')
        salvar_quadro_societario(empresa_id, [_socio('31431431431', 'Otto', 50), _socio('32132132132', 'Paula', 50)])
        salvar_quadro_societario(empresa_id, [_socio('31431431431', 'Otto', 100)])

        empresa = db.session.get(Empresa, empresa_id)
        db.session.refresh(empresa)
        assert {v.socio.cpf for v in empresa.socios_ativos} == {'31431431431', '32132132132'}


def test_desligar_e_reativar_vinculo():
    with app.app_context():
        empresa_id = _nova_empresa('111', '12121212000144')
        resultado = processar_quadro_societario(empresa_id, [_socio('65465465465', 'Quirino', 100)])
        socio_id = resultado['socios'][0].id

        vinculo = desligar_socio(empresa_id, socio_id)
        assert vinculo.ativo is False

        processar_quadro_societario(empresa_id, [_socio('65465465465', 'Quirino', 100)])
        vinculo = EmpresaSocio.query.filter_by(empresa_id=empresa_id, socio_id=socio_id).one()
        assert vinculo.ativo is True

        with pytest.raises(NotFoundError):
            desligar_socio(empresa_id, 999999)


def test_empresa_inexistente():
    with app.app_context():
        resultado = salvar_quadro_societario(999999, [_socio('52998224725', 'Ana', 100)])
        assert resultado == {'success': False, 'error': 'Empresa não encontrada.'}


def test_falha_no_segundo_socio_desfaz_o_primeiro():
    with app.app_context():
        empresa_id = _nova_empresa('112', '13131313000155')
        socios_antes = Socio.query.count()
        historico_antes = SocioHistorico.query.count()

        resultado = salvar_quadro_societario(empresa_id, [
            _socio('60060060060', 'Ana', 50),
            _socio('61061061061', '', 50),
        ])
        assert resultado == {'success': False, 'error': 'Nome do sócio é obrigatório (CPF 61061061061).'}
        assert Socio.query.filter_by(cpf='60060060060').first() is None
        assert Socio.query.count() == socios_antes
        assert SocioHistorico.query.count() == historico_antes
        assert EmpresaSocio.query.filter_by(empresa_id=empresa_id).count() == 0


def test_falha_ao_gravar_snapshot_desfaz_o_lote():
    with app.app_context():
        empresa_id = _nova_empresa('113', '14141414000166')
        historico_empresa_antes = EmpresaHistorico.query.filter_by(empresa_id=empresa_id).count()

        with patch('app.services.socios.registrar_snapshot_socio', side_effect=SQLAlchemyError('disco cheio')):
            resultado = salvar_quadro_societario(empresa_id, [_socio('70070070070', 'Renata', 100)])

        assert resultado == {'success': False, 'error': 'Não foi possível salvar o quadro societário.'}
        assert Socio.query.filter_by(cpf='70070070070').first() is None
        assert EmpresaSocio.query.filter_by(empresa_id=empresa_id).count() == 0
        assert EmpresaHistorico.query.filter_by(empresa_id=empresa_id).count() == historico_empresa_antes


def test_atualizar_socio_registra_snapshot_e_protege_cpf():
    with app.app_context():
        empresa_id = _nova_empresa('114', '15151515000177')
        resultado = processar_quadro_societario(empresa_id, [
            _socio('80080080080', 'Sergio', 60),
            _socio('90090090090', 'Tania', 40),
        ])
        sergio, tania = resultado['socios']
        assert SocioHistorico.query.filter_by(socio_id=sergio.id).count() == 1

        atualizar_socio(sergio.id, {'nome': 'Sergio Souza', 'municipio': 'Santos'})
        atualizar_socio(sergio.id, {'nome': 'Sergio Souza', 'municipio': 'Santos'})
        assert db.session.get(Socio, sergio.id).nome == 'Sergio Souza'
        assert SocioHistorico.query.filter_by(socio_id=sergio.id).count() == 3

        with pytest.raises(ConflictError) as exc:
            atualizar_socio(sergio.id, {'cpf': '90090090090', 'nome': 'Sergio Souza'})
        assert exc.value.campos == ('cpf',)
        assert db.session.get(Socio, sergio.id).cpf == '80080080080'
        assert SocioHistorico.query.filter_by(socio_id=sergio.id).count() == 3

        atualizar_socio(tania.id, {'cpf': '91091091091', 'nome': 'Tania'})
        assert db.session.get(Socio, tania.id).cpf == '91091091091'
