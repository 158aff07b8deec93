"""WTForms definitions for application-specific forms."""

from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField, FileRequired
from wtforms import (
    BooleanField,
    DateField,
    DecimalField,
    FieldList,
    Form,
    FormField,
    PasswordField,
    StringField,
    SubmitField,
)
from wtforms.validators import (
    DataRequired,
    Email,
    Length,
    NumberRange,
    Optional,
    ValidationError,
)

from app.utils.documentos import normalizar_digitos, validar_cnpj, validar_cpf

UF_LENGTH = Length(max=2, message="Informe a sigla da UF.")


class LoginForm(FlaskForm):
    """Formulário para login de usuários."""
    # Nome de usuário para autenticação
    username = StringField("Usuário", validators=[DataRequired()])
    # Campo de senha do usuário
    password = PasswordField("Senha", validators=[DataRequired()])
    # Checkbox para manter a sessão ativa
    remember_me = BooleanField("Lembrar-me")
    submit = SubmitField("Entrar")


def cnpj_valido(form, field):
    """Valida um CNPJ utilizando os dígitos verificadores."""
    if not validar_cnpj(field.data):
        raise ValidationError("CNPJ inválido")
    field.data = normalizar_digitos(field.data)


def cpf_valido(form, field):
    """Valida um CPF utilizando os dígitos verificadores."""
    if not validar_cpf(field.data):
        raise ValidationError("CPF inválido")
    field.data = normalizar_digitos(field.data)


def _dados(form, campos):
    return {campo: getattr(form, campo).data for campo in campos}


class EmpresaForm(FlaskForm):
    """Formulário para cadastrar ou editar uma empresa."""
    CAMPOS = (
        'codigo', 'razao_social', 'nome_fantasia', 'cnpj', 'filial', 'telefone',
        'email_contato', 'data_abertura', 'municipio', 'uf', 'endereco_tipo',
        'endereco_logradouro', 'endereco_numero', 'endereco_complemento',
        'endereco_bairro', 'endereco_cep', 'capital_social',
    )

    codigo = StringField('Código', validators=[DataRequired(), Length(max=20)])
    razao_social = StringField('Razão Social', validators=[DataRequired(), Length(max=255)])
    nome_fantasia = StringField('Nome Fantasia', validators=[Optional(), Length(max=255)])
    cnpj = StringField('CNPJ', validators=[DataRequired(), cnpj_valido])
    filial = StringField('Filial', validators=[Optional(), Length(max=10)])
    telefone = StringField('Telefone', validators=[Optional(), Length(max=20)])
    email_contato = StringField('E-mail de contato', validators=[Optional(), Email()])
    data_abertura = DateField('Data de Abertura', format='%Y-%m-%d', validators=[Optional()])
    municipio = StringField('Município', validators=[Optional(), Length(max=100)])
    uf = StringField('UF', validators=[Optional(), UF_LENGTH])
    # Endereco: preenchido pela consulta de CEP
    endereco_cep = StringField('CEP', validators=[Optional(), Length(max=9)])
    endereco_tipo = StringField('Tipo de logradouro', validators=[Optional(), Length(max=30)])
    endereco_logradouro = StringField('Logradouro', validators=[Optional(), Length(max=255)])
    endereco_numero = StringField('Número', validators=[Optional(), Length(max=20)])
    endereco_complemento = StringField('Complemento', validators=[Optional(), Length(max=100)])
    endereco_bairro = StringField('Bairro', validators=[Optional(), Length(max=100)])
    capital_social = DecimalField(
        'Capital Social (R$)', places=2, validators=[Optional(), NumberRange(min=0)]
    )
    submit = SubmitField('Salvar')

    def dados_empresa(self) -> dict:
        """Campos da empresa no formato aceito pelos serviços."""
        return _dados(self, self.CAMPOS)

    def preencher(self, empresa):
        """Carrega os dados de ``empresa`` no formulário (GET)."""
        for campo in self.CAMPOS:
            if campo == 'capital_social':
                centavos = empresa.capital_social_centavos
                self.capital_social.data = centavos / 100 if centavos is not None else None
            else:
                getattr(self, campo).data = getattr(empresa, campo)


class SocioEntryForm(Form):
    """Linha do quadro societário dentro do formulário de empresa (sem CSRF próprio)."""
    CAMPOS = (
        'cpf', 'nome', 'data_nascimento', 'rg', 'orgao_expedidor', 'uf_orgao_expedidor',
        'data_expedicao', 'cnh', 'cep', 'logradouro_tipo', 'logradouro', 'numero',
        'complemento', 'bairro', 'municipio', 'uf',
    )

    cpf = StringField('CPF', validators=[Optional(), cpf_valido])
    nome = StringField('Nome', validators=[Optional(), Length(max=255)])
    data_nascimento = DateField('Data de Nascimento', format='%Y-%m-%d', validators=[Optional()])
    rg = StringField('RG', validators=[Optional(), Length(max=20)])
    orgao_expedidor = StringField('Órgão Expedidor', validators=[Optional(), Length(max=20)])
    uf_orgao_expedidor = StringField('UF do Órgão', validators=[Optional(), UF_LENGTH])
    data_expedicao = DateField('Data de Expedição', format='%Y-%m-%d', validators=[Optional()])
    cnh = StringField('CNH', validators=[Optional(), Length(max=20)])
    cep = StringField('CEP', validators=[Optional(), Length(max=9)])
    logradouro_tipo = StringField('Tipo', validators=[Optional(), Length(max=30)])
    logradouro = StringField('Logradouro', validators=[Optional(), Length(max=255)])
    numero = StringField('Número', validators=[Optional(), Length(max=20)])
    complemento = StringField('Complemento', validators=[Optional(), Length(max=100)])
    bairro = StringField('Bairro', validators=[Optional(), Length(max=100)])
    municipio = StringField('Município', validators=[Optional(), Length(max=100)])
    uf = StringField('UF', validators=[Optional(), UF_LENGTH])
    # Texto livre: aceita "33,33" ou "33.33"
    participacao = StringField('Participação (%)', validators=[Optional()])

    def vazio(self) -> bool:
        return not (self.cpf.data or self.nome.data or self.participacao.data)

    def dados_socio(self) -> dict:
        dados = _dados(self, self.CAMPOS)
        dados['participacao'] = self.participacao.data
        return dados


class EmpresaEditForm(EmpresaForm):
    """Edição da empresa junto com o quadro societário."""
    socios = FieldList(FormField(SocioEntryForm), min_entries=0)

    def quadro_societario(self) -> list:
        """Linhas preenchidas do quadro, na ordem do formulário."""
        return [entrada.form.dados_socio() for entrada in self.socios if not entrada.form.vazio()]


class SocioForm(FlaskForm):
    """Edição dos dados pessoais de um sócio."""
    cpf = StringField('CPF', validators=[DataRequired(), cpf_valido])
    nome = StringField('Nome', validators=[DataRequired(), Length(max=255)])
    data_nascimento = DateField('Data de Nascimento', format='%Y-%m-%d', validators=[Optional()])
    rg = StringField('RG', validators=[Optional(), Length(max=20)])
    orgao_expedidor = StringField('Órgão Expedidor', validators=[Optional(), Length(max=20)])
    uf_orgao_expedidor = StringField('UF do Órgão', validators=[Optional(), UF_LENGTH])
    data_expedicao = DateField('Data de Expedição', format='%Y-%m-%d', validators=[Optional()])
    cnh = StringField('CNH', validators=[Optional(), Length(max=20)])
    cep = StringField('CEP', validators=[Optional(), Length(max=9)])
    logradouro_tipo = StringField('Tipo', validators=[Optional(), Length(max=30)])
    logradouro = StringField('Logradouro', validators=[Optional(), Length(max=255)])
    numero = StringField('Número', validators=[Optional(), Length(max=20)])
    complemento = StringField('Complemento', validators=[Optional(), Length(max=100)])
    bairro = StringField('Bairro', validators=[Optional(), Length(max=100)])
    municipio = StringField('Município', validators=[Optional(), Length(max=100)])
    uf = StringField('UF', validators=[Optional(), UF_LENGTH])
    submit = SubmitField('Salvar')

    def dados_socio(self) -> dict:
        return _dados(self, SocioEntryForm.CAMPOS)


class ImportarEmpresasForm(FlaskForm):
    """Upload do CSV de empresas exportado pelo ERP."""
    arquivo = FileField(
        'Arquivo CSV',
        validators=[FileRequired(), FileAllowed(['csv', 'txt'], 'Envie um arquivo CSV.')],
    )
    submit = SubmitField('Importar')
