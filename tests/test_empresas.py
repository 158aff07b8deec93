import os
from datetime import date
from unittest.mock import patch

os.environ['DATABASE_URL'] = 'sqlite:///:memory:'

import pytest
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from app import app, db
from app.models.tables import Admissao, Empresa, EmpresaHistorico, Funcionario, SocioHistorico, Transferencia, UsuarioEmpresa, User
from app.services.empresas import (
    alternar_status,
    atualizar_empresa,
    consultar_empresas,
    criar_empresa,
    possui_vinculos,
)
from app.services.exceptions import ConflictError, HistoricoImutavelError, PersistenceError, ValidationError
from app.services.historico import listar_historico_empresa
from app.services.importacao_empresas import importar_empresas_csv, sanitizar_texto


def setup_module(module):
    with app.app_context():
        app.config['WTF_CSRF_ENABLED'] = False
        db.drop_all()
        db.create_all()


def _empresa(codigo, cnpj, **extra):
    dados = {'codigo': codigo, 'cnpj': cnpj, 'razao_social': f'Empresa {codigo}', **extra}
    return criar_empresa(dados)


def test_criar_empresa_registra_snapshot():
    with app.app_context():
        empresa = _empresa('10', '11.222.333/0001-81', capital_social='1.500,50', data_abertura='01/02/2020')
        assert empresa.cnpj == '11222333000181'
        assert empresa.capital_social_centavos == 150050
        assert empresa.data_abertura == date(2020, 2, 1)

        snapshots = listar_historico_empresa(empresa.id)
        assert len(snapshots) == 1
        assert snapshots[0].codigo == '10'
        assert snapshots[0].origem == 'company_form'


def test_codigo_e_cnpj_duplicados():
    with app.app_context():
        with pytest.raises(ConflictError) as exc:
            _empresa('10', '11444777000161')
        assert exc.value.campos == ('codigo',)

        with pytest.raises(ConflictError) as exc:
            _empresa('99', '11222333000181')
        assert exc.value.campos == ('cnpj',)


def test_campos_obrigatorios():
    with app.app_context():
        with pytest.raises(ValidationError):
            criar_empresa({'codigo': '50', 'cnpj': '123', 'razao_social': 'X'})
        with pytest.raises(ValidationError):
            criar_empresa({'codigo': '50', 'cnpj': '11444777000161'})


def test_empresa_sem_vinculos_altera_codigo():
    with app.app_context():
        empresa = _empresa('20', '20000000000120')
        assert possui_vinculos(empresa.id) is False

        empresa, conflito = atualizar_empresa(empresa.id, {'codigo': '21'})
        assert conflito is None
        assert empresa.codigo == '21'


def test_empresa_com_funcionario_mantem_codigo():
    with app.app_context():
        empresa = _empresa('30', '30000000000130', endereco_logradouro='Rua A')
        db.session.add(Funcionario(empresa_id=empresa.id, nome='Funcionario', ativo=True))
        db.session.commit()
        assert possui_vinculos(empresa.id) is True

        empresa, conflito = atualizar_empresa(
            empresa.id, {'codigo': '31', 'endereco_logradouro': 'Rua B'}
        )
        assert conflito is not None
        assert 'CÓDIGO' in conflito.message
        assert conflito.campos == ('codigo',)
        assert empresa.codigo == '30'
        assert empresa.endereco_logradouro == 'Rua B'

        empresa, conflito = atualizar_empresa(empresa.id, {'endereco_logradouro': 'Rua C'})
        assert conflito is None
        assert empresa.endereco_logradouro == 'Rua C'

        # criacao, duas atualizacoes
        assert len(listar_historico_empresa(empresa.id)) == 3


def test_empresa_com_admissao_mantem_cnpj():
    with app.app_context():
        empresa = _empresa('40', '40000000000140')
        db.session.add(Admissao(empresa_id=empresa.id, nome='Nova contratacao'))
        db.session.commit()

        empresa, conflito = atualizar_empresa(empresa.id, {'cnpj': '40000000000199'})
        assert 'CNPJ' in conflito.message
        assert empresa.cnpj == '40000000000140'


def test_usuario_vinculado_conta_como_vinculo():
    with app.app_context():
        empresa = _empresa('45', '45000000000145')
        user = User(username='op45', name='Operador', email='op45@example.com')
        user.set_password('x')
        db.session.add(user)
        db.session.flush()
        db.session.add(UsuarioEmpresa(user_id=user.id, empresa_id=empresa.id))
        db.session.commit()
        assert possui_vinculos(empresa.id) is True


def test_alternar_status_e_consulta():
    with app.app_context():
        empresa = _empresa('50', '50000000000150', razao_social='Padaria Status')
        empresa = alternar_status(empresa.id)
        assert empresa.ativo is False

        assert empresa not in consultar_empresas('Padaria').all()
        assert empresa in consultar_empresas('Padaria', mostrar_inativas=True).all()
        assert empresa in consultar_empresas('50000000', mostrar_inativas=True).all()

        empresa = alternar_status(empresa.id, ativo=True)
        assert empresa.ativo is True
        assert listar_historico_empresa(empresa.id)[0].ativo is True


def test_snapshot_nao_pode_ser_alterado():
    with app.app_context():
        empresa = _empresa('60', '60000000000160')
        snapshot = listar_historico_empresa(empresa.id)[0]

        snapshot.razao_social = 'Adulterada'
        with pytest.raises(HistoricoImutavelError):
            db.session.commit()
        db.session.rollback()

        with pytest.raises(HistoricoImutavelError):
            db.session.delete(snapshot)
            db.session.flush()
        db.session.rollback()


def test_snapshot_nao_aceita_update_em_massa():
    with app.app_context():
        with pytest.raises(HistoricoImutavelError):
            db.session.execute(sa.update(EmpresaHistorico).values(origem='x'))
        db.session.rollback()

        with pytest.raises(HistoricoImutavelError):
            SocioHistorico.query.delete()
        db.session.rollback()


CSV_ERP = (
    "CODIGOEMPRESA;CODIGOESTAB;INSCRFEDERAL;DATAINICIOATIV;NOMEESTABCOMPLETO;NOMEFANTASIA;"
    "DESCRTIPOLOGRAD;ENDERECOESTAB;NUMENDERESTAB;COMPLENDERESTAB;BAIRROENDERESTAB;NOMEMUNIC;"
    "SIGLAESTADO;CEPENDERESTAB;EMAILDPO\n"
    "700;1;70.000.000/0001-70;15/03/2019;Comércio São João Ltda;São João;Rua;Rua das Flores;10;;Centro;"
    "Curitiba;pr;80000-000;dpo@saojoao.com.br\n"
    "701;1;;01/01/2020;Sem CNPJ;;;;;;;;;;\n"
    "10;1;71000000000171;01/01/2020;Codigo de outra empresa;;;;;;;;;;\n"
)


def test_importar_csv():
    with app.app_context():
        resultado = importar_empresas_csv(CSV_ERP.encode('cp1252'))
        assert resultado == {'success': True, 'count': 1, 'errors': 2}

        empresa = Empresa.query.filter_by(cnpj='70000000000170').one()
        assert empresa.codigo == '700'
        assert empresa.razao_social == 'Comercio Sao Joao Ltda'
        assert empresa.uf == 'PR'
        assert empresa.endereco_cep == '80000000'
        assert empresa.data_abertura == date(2019, 3, 15)
        assert listar_historico_empresa(empresa.id)[0].origem == 'csv_import'


def test_importar_csv_atualiza_por_cnpj_mantendo_codigo_vinculado():
    with app.app_context():
        empresa = Empresa.query.filter_by(cnpj='70000000000170').one()
        db.session.add(Funcionario(empresa_id=empresa.id, nome='Vinculo', ativo=True))
        db.session.commit()

        csv_texto = (
            "CODIGOEMPRESA,INSCRFEDERAL,NOMEESTABCOMPLETO\n"
            "799,70000000000170,Comercio Sao Joao Eireli\n"
        )
        resultado = importar_empresas_csv(csv_texto.encode('utf-8'))
        assert resultado['count'] == 1

        empresa = Empresa.query.filter_by(cnpj='70000000000170').one()
        assert empresa.codigo == '700'
        assert empresa.razao_social == 'Comercio Sao Joao Eireli'


def test_importar_csv_sem_coluna_cnpj():
    with app.app_context():
        with pytest.raises(ValidationError):
            importar_empresas_csv(b"CODIGOEMPRESA;NOME\n1;X\n")


def test_sanitizar_texto():
    assert sanitizar_texto('Açaí & Cia. Ltda!') == 'Acai  Cia. Ltda'
    assert sanitizar_texto('') is None


def test_transferencia_conta_como_vinculo_na_origem_e_no_destino():
    with app.app_context():
        origem = _empresa('46', '46000000000146')
        destino = _empresa('47', '47000000000147')
        assert possui_vinculos(origem.id) is False
        assert possui_vinculos(destino.id) is False

        db.session.add(Transferencia(
            empresa_origem_id=origem.id,
            empresa_destino_id=destino.id,
            funcionario_nome='Transferido',
            data_transferencia=date(2024, 3, 1),
        ))
        db.session.commit()
        assert possui_vinculos(origem.id) is True
        assert possui_vinculos(destino.id) is True

        _, conflito = atualizar_empresa(destino.id, {'codigo': '48'})
        assert conflito is not None
        assert db.session.get(Empresa, destino.id).codigo == '47'


def test_falha_ao_gravar_snapshot_desfaz_empresa():
    with app.app_context():
        with patch('app.services.empresas.registrar_snapshot_empresa', side_effect=SQLAlchemyError('falha')):
            with pytest.raises(PersistenceError):
                _empresa('49', '49000000000149')
        assert Empresa.query.filter_by(codigo='49').first() is None

        empresa = _empresa('51', '51000000000151', nome_fantasia='Antes')
        with patch('app.services.empresas.registrar_snapshot_empresa', side_effect=SQLAlchemyError('falha')):
            with pytest.raises(PersistenceError):
                atualizar_empresa(empresa.id, {'nome_fantasia': 'Depois'})
        assert db.session.get(Empresa, empresa.id).nome_fantasia == 'Antes'
        assert len(listar_historico_empresa(empresa.id)) == 1
