import os

os.environ['DATABASE_URL'] = 'sqlite:///:memory:'

from app import app, db
from app.models.tables import Empresa, EmpresaSocio, Funcionario, Socio, SocioHistorico
from app.services.exceptions import MENSAGEM_SOMA_PARTICIPACOES


def setup_module(module):
    with app.app_context():
        app.config['WTF_CSRF_ENABLED'] = False
        app.config['LOGIN_DISABLED'] = True
        db.drop_all()
        db.create_all()


def _criar_empresa_api(client, codigo, cnpj, **extra):
    resp = client.post('/api/empresas', json={'codigo': codigo, 'cnpj': cnpj, 'razao_social': f'Empresa {codigo}', **extra})
    assert resp.status_code == 201
    return resp.get_json()['item']['id']


def test_health_endpoints():
    client = app.test_client()
    assert client.get('/health').get_json() == {'status': 'ok', 'database': 'ok'}
    assert client.get('/ping').status_code == 401


def test_criar_e_consultar_empresa():
    client = app.test_client()
    empresa_id = _criar_empresa_api(client, '10', '11222333000181', uf='sp')

    resp = client.get(f'/api/empresas/{empresa_id}')
    data = resp.get_json()
    assert resp.status_code == 200
    assert data['success'] is True
    assert data['item']['codigo'] == '10'
    assert data['item']['uf'] == 'SP'
    assert data['item']['socios'] == []

    resp = client.post('/api/empresas', json={'codigo': '10', 'cnpj': '11444777000161', 'razao_social': 'Outra'})
    assert resp.status_code == 409
    assert resp.get_json() == {'success': False, 'error': 'Código já cadastrado.'}


def test_empresa_inexistente_retorna_404():
    client = app.test_client()
    resp = client.get('/api/empresas/999999')
    assert resp.status_code == 404
    assert resp.get_json()['success'] is False


def test_gravar_quadro_via_api():
    client = app.test_client()
    empresa_id = _criar_empresa_api(client, '20', '20000000000120')

    resp = client.post(f'/api/empresas/{empresa_id}/socios', json={
        'socios': [
            {'cpf': '529.982.247-25', 'nome': 'Ana', 'participacao': '60'},
            {'cpf': '11144477735', 'nome': 'Bruno', 'participacao': 40},
        ],
        'empresa': {'nome_fantasia': 'Fantasia 20'},
    })
    data = resp.get_json()
    assert resp.status_code == 200
    assert data['success'] is True
    assert data['total'] == '100.00'
    assert [s['cpf'] for s in data['socios']] == ['52998224725', '11144477735']

    resp = client.get(f'/api/empresas/{empresa_id}/socios')
    items = resp.get_json()['items']
    assert {i['cpf']: i['participacao'] for i in items} == {'52998224725': '60.00', '11144477735': '40.00'}

    with app.app_context():
        assert db.session.get(Empresa, empresa_id).nome_fantasia == 'Fantasia 20'


def test_quadro_com_soma_errada_retorna_400():
    client = app.test_client()
    empresa_id = _criar_empresa_api(client, '30', '30000000000130')

    resp = client.post(f'/api/empresas/{empresa_id}/socios', json={
        'socios': [
            {'cpf': '11122233396', 'nome': 'C', 'participacao': 50},
            {'cpf': '98765432100', 'nome': 'D', 'participacao': 40},
        ],
    })
    assert resp.status_code == 400
    assert resp.get_json() == {'success': False, 'error': MENSAGEM_SOMA_PARTICIPACOES, 'total': '90.00'}

    with app.app_context():
        assert Socio.query.filter_by(cpf='11122233396').first() is None


def test_quadro_com_corpo_malformado_retorna_400():
    client = app.test_client()
    empresa_id = _criar_empresa_api(client, '31', '31000000000131')

    resp = client.post(f'/api/empresas/{empresa_id}/socios', json=[1, 2])
    assert resp.status_code == 400
    assert resp.get_json() == {'success': False, 'error': 'O corpo da requisição deve ser um objeto JSON.'}

    resp = client.post(f'/api/empresas/{empresa_id}/socios', json={
        'socios': [{'cpf': '52998224725', 'nome': 'Ana', 'participacao': 100}],
        'empresa': 'Nova razao',
    })
    assert resp.status_code == 400
    assert resp.get_json() == {'success': False, 'error': "O campo 'empresa' deve ser um objeto."}

    resp = client.post(f'/api/empresas/{empresa_id}/socios', json={'socios': 'Ana'})
    assert resp.status_code == 400

    with app.app_context():
        assert EmpresaSocio.query.filter_by(empresa_id=empresa_id).count() == 0


def test_atualizacao_de_empresa_vinculada_e_parcial():
    client = app.test_client()
    empresa_id = _criar_empresa_api(client, '40', '40000000000140')
    with app.app_context():
        db.session.add(Funcionario(empresa_id=empresa_id, nome='Funcionario', ativo=True))
        db.session.commit()

    resp = client.post(f'/api/empresas/{empresa_id}', json={'codigo': '41', 'endereco_logradouro': 'Rua Nova'})
    data = resp.get_json()
    assert resp.status_code == 409
    assert data['parcial'] is True
    assert 'CÓDIGO' in data['error']
    assert data['item']['codigo'] == '40'
    assert data['item']['endereco_logradouro'] == 'Rua Nova'

    resp = client.post(f'/api/empresas/{empresa_id}', json={'endereco_logradouro': 'Rua Velha'})
    assert resp.status_code == 200
    assert resp.get_json()['item']['endereco_logradouro'] == 'Rua Velha'


def test_historico_e_desligamento():
    client = app.test_client()
    empresa_id = _criar_empresa_api(client, '50', '50000000000150')
    for _ in range(2):
        client.post(f'/api/empresas/{empresa_id}/socios', json={
            'socios': [{'cpf': '12345678909', 'nome': 'Eduardo', 'participacao': 100}],
        })

    with app.app_context():
        socio = Socio.query.filter_by(cpf='12345678909').one()
        socio_id = socio.id

    resp = client.get(f'/api/socios/{socio_id}/historico')
    data = resp.get_json()
    assert data['count'] == 2
    assert data['items'][0]['participacao_percent'] == '100.00'
    assert data['items'][0]['origem'] == 'api'

    resp = client.get(f'/api/empresas/{empresa_id}/historico')
    assert resp.get_json()['count'] == 3

    resp = client.post(f'/api/empresas/{empresa_id}/socios/{socio_id}/desligar')
    assert resp.status_code == 200
    assert resp.get_json()['ativo'] is False
    assert client.get(f'/api/empresas/{empresa_id}/socios').get_json()['items'] == []

    with app.app_context():
        assert EmpresaSocio.query.filter_by(empresa_id=empresa_id, socio_id=socio_id).one().ativo is False
        assert SocioHistorico.query.filter_by(socio_id=socio_id).count() == 2

    resp = client.post(f'/api/empresas/{empresa_id}/socios/999999/desligar')
    assert resp.status_code == 404


def test_busca_de_socios():
    client = app.test_client()
    data = client.get('/api/socios?q=Eduardo').get_json()
    assert data['success'] is True
    assert [s['cpf'] for s in data['items']] == ['12345678909']

    data = client.get('/api/socios?q=123456').get_json()
    assert data['count'] == 1


def test_listagem_html():
    client = app.test_client()
    resp = client.get('/empresas', query_string={'q': 'Empresa 10'})
    assert resp.status_code == 200
    assert b'Empresa 10' in resp.data
    assert b'11.222.333/0001-81' in resp.data

    resp = client.get('/socios', query_string={'q': '52998224725'})
    assert resp.status_code == 200
    assert b'529.982.247-25' in resp.data


def test_edicao_html_do_quadro():
    client = app.test_client()
    empresa_id = _criar_empresa_api(client, '60', '11444777000161')

    form = {
        'codigo': '60',
        'cnpj': '11.444.777/0001-61',
        'razao_social': 'Empresa 60 Ltda',
        'socios-0-cpf': '529.982.247-25',
        'socios-0-nome': 'Ana',
        'socios-0-participacao': '70,5',
        'socios-1-cpf': '111.444.777-35',
        'socios-1-nome': 'Bruno',
        'socios-1-participacao': '29,5',
    }
    resp = client.post(f'/empresas/{empresa_id}/editar', data=form)
    assert resp.status_code == 302

    with app.app_context():
        empresa = db.session.get(Empresa, empresa_id)
        assert empresa.razao_social == 'Empresa 60 Ltda'
        assert sorted(str(v.participacao_percent) for v in empresa.socios_ativos) == ['29.50', '70.50']

    resp = client.get(f'/empresas/{empresa_id}/editar')
    assert resp.status_code == 200
    assert b'52998224725' in resp.data


def test_edicao_html_rejeita_soma_errada():
    client = app.test_client()
    with app.app_context():
        empresa_id = Empresa.query.filter_by(codigo='60').one().id

    form = {
        'codigo': '60',
        'cnpj': '11444777000161',
        'razao_social': 'Empresa 60 Alterada',
        'socios-0-cpf': '52998224725',
        'socios-0-nome': 'Ana',
        'socios-0-participacao': '50',
    }
    resp = client.post(f'/empresas/{empresa_id}/editar', data=form)
    assert resp.status_code == 200
    assert MENSAGEM_SOMA_PARTICIPACOES.encode('utf-8') in resp.data

    with app.app_context():
        assert db.session.get(Empresa, empresa_id).razao_social == 'Empresa 60 Ltda'


def test_edicao_html_rejeita_cpf_invalido():
    client = app.test_client()
    with app.app_context():
        empresa_id = Empresa.query.filter_by(codigo='60').one().id

    form = {
        'codigo': '60',
        'cnpj': '11444777000161',
        'razao_social': 'Empresa 60 Ltda',
        'socios-0-cpf': '12345678900',
        'socios-0-nome': 'Invalido',
        'socios-0-participacao': '100',
    }
    resp = client.post(f'/empresas/{empresa_id}/editar', data=form)
    assert resp.status_code == 200
    assert 'CPF inválido'.encode('utf-8') in resp.data


def test_status_e_historico_html():
    client = app.test_client()
    with app.app_context():
        empresa_id = Empresa.query.filter_by(codigo='60').one().id

    resp = client.post(f'/empresas/{empresa_id}/status')
    assert resp.status_code == 302
    with app.app_context():
        assert db.session.get(Empresa, empresa_id).ativo is False

    resp = client.get(f'/empresas/{empresa_id}/historico')
    assert resp.status_code == 200
    assert b'company_form' in resp.data


def test_importacao_html():
    from io import BytesIO

    client = app.test_client()
    csv_bytes = b"CODIGOEMPRESA;INSCRFEDERAL;NOMEESTABCOMPLETO\n900;90000000000190;Importada Ltda\n"
    resp = client.post(
        '/empresas/importar',
        data={'arquivo': (BytesIO(csv_bytes), 'empresas.csv')},
        content_type='multipart/form-data',
    )
    assert resp.status_code == 302
    with app.app_context():
        assert Empresa.query.filter_by(cnpj='90000000000190').one().codigo == '900'
