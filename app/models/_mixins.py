"""
Mixins com os campos compartilhados entre entidades e seus snapshots.

Empresa/EmpresaHistorico e Socio/SocioHistorico precisam do mesmo conjunto
de colunas: a entidade guarda o estado atual e o historico guarda uma copia
integral a cada gravacao. Os mixins declaram as colunas uma unica vez.

Uso:
    class Empresa(EmpresaCamposMixin, db.Model):
        __tablename__ = "empresas"
        ...

    snapshot = EmpresaHistorico(**empresa.campos_snapshot())
"""

from app import db


class EmpresaCamposMixin:
    """Colunas de dados cadastrais de uma empresa."""

    CAMPOS = (
        "codigo",
        "razao_social",
        "nome_fantasia",
        "cnpj",
        "filial",
        "telefone",
        "email_contato",
        "data_abertura",
        "municipio",
        "uf",
        "endereco_tipo",
        "endereco_logradouro",
        "endereco_numero",
        "endereco_complemento",
        "endereco_bairro",
        "endereco_cep",
        "capital_social_centavos",
        "ativo",
    )

    razao_social = db.Column(db.String(255), nullable=False)
    nome_fantasia = db.Column(db.String(255))
    filial = db.Column(db.String(10))
    telefone = db.Column(db.String(20))
    email_contato = db.Column(db.String(120))
    data_abertura = db.Column(db.Date)
    municipio = db.Column(db.String(100))
    uf = db.Column(db.String(2))
    endereco_tipo = db.Column(db.String(30))
    endereco_logradouro = db.Column(db.String(255))
    endereco_numero = db.Column(db.String(20))
    endereco_complemento = db.Column(db.String(100))
    endereco_bairro = db.Column(db.String(100))
    endereco_cep = db.Column(db.String(8))
    capital_social_centavos = db.Column(db.BigInteger)
    ativo = db.Column(db.Boolean, default=True, nullable=False)

    def campos_snapshot(self) -> dict:
        """Retorna uma copia dos campos cadastrais para gravacao no historico."""
        return {campo: getattr(self, campo) for campo in self.CAMPOS}


class SocioCamposMixin:
    """Colunas de dados pessoais e endereco de um socio."""

    CAMPOS = (
        "cpf",
        "nome",
        "data_nascimento",
        "rg",
        "orgao_expedidor",
        "uf_orgao_expedidor",
        "data_expedicao",
        "cnh",
        "cep",
        "logradouro_tipo",
        "logradouro",
        "numero",
        "complemento",
        "bairro",
        "municipio",
        "uf",
    )

    nome = db.Column(db.String(255), nullable=False)
    data_nascimento = db.Column(db.Date)
    rg = db.Column(db.String(20))
    orgao_expedidor = db.Column(db.String(20))
    uf_orgao_expedidor = db.Column(db.String(2))
    data_expedicao = db.Column(db.Date)
    cnh = db.Column(db.String(20))
    cep = db.Column(db.String(8))
    logradouro_tipo = db.Column(db.String(30))
    logradouro = db.Column(db.String(255))
    numero = db.Column(db.String(20))
    complemento = db.Column(db.String(100))
    bairro = db.Column(db.String(100))
    municipio = db.Column(db.String(100))
    uf = db.Column(db.String(2))

    def campos_snapshot(self) -> dict:
        return {campo: getattr(self, campo) for campo in self.CAMPOS}
