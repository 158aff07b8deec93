"""create portal societario tables

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _colunas_empresa():
    return [
        sa.Column('razao_social', sa.String(length=255), nullable=False),
        sa.Column('nome_fantasia', sa.String(length=255)),
        sa.Column('filial', sa.String(length=10)),
        sa.Column('telefone', sa.String(length=20)),
        sa.Column('email_contato', sa.String(length=120)),
        sa.Column('data_abertura', sa.Date()),
        sa.Column('municipio', sa.String(length=100)),
        sa.Column('uf', sa.String(length=2)),
        sa.Column('endereco_tipo', sa.String(length=30)),
        sa.Column('endereco_logradouro', sa.String(length=255)),
        sa.Column('endereco_numero', sa.String(length=20)),
        sa.Column('endereco_complemento', sa.String(length=100)),
        sa.Column('endereco_bairro', sa.String(length=100)),
        sa.Column('endereco_cep', sa.String(length=8)),
        sa.Column('capital_social_centavos', sa.BigInteger()),
        sa.Column('ativo', sa.Boolean(), nullable=False),
    ]


def _colunas_socio():
    return [
        sa.Column('nome', sa.String(length=255), nullable=False),
        sa.Column('data_nascimento', sa.Date()),
        sa.Column('rg', sa.String(length=20)),
        sa.Column('orgao_expedidor', sa.String(length=20)),
        sa.Column('uf_orgao_expedidor', sa.String(length=2)),
        sa.Column('data_expedicao', sa.Date()),
        sa.Column('cnh', sa.String(length=20)),
        sa.Column('cep', sa.String(length=8)),
        sa.Column('logradouro_tipo', sa.String(length=30)),
        sa.Column('logradouro', sa.String(length=255)),
        sa.Column('numero', sa.String(length=20)),
        sa.Column('complemento', sa.String(length=100)),
        sa.Column('bairro', sa.String(length=100)),
        sa.Column('municipio', sa.String(length=100)),
        sa.Column('uf', sa.String(length=2)),
    ]


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=80), nullable=False, unique=True),
        sa.Column('password', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=False, unique=True),
        sa.Column('ativo', sa.Boolean()),
        sa.Column('role', sa.String(length=20)),
        sa.Column('last_seen', sa.DateTime()),
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('username', sa.String(length=80), nullable=False),
        sa.Column('action_type', sa.String(length=50), nullable=False),
        sa.Column('resource_type', sa.String(length=50), nullable=False),
        sa.Column('resource_id', sa.Integer()),
        sa.Column('action_description', sa.String(length=255), nullable=False),
        sa.Column('old_values', sa.JSON()),
        sa.Column('new_values', sa.JSON()),
        sa.Column('ip_address', sa.String(length=45)),
        sa.Column('user_agent', sa.Text()),
        sa.Column('request_id', sa.String(length=50)),
        sa.Column('endpoint', sa.String(length=255)),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_audit_user_id', 'audit_logs', ['user_id'])
    op.create_index('idx_audit_action_type', 'audit_logs', ['action_type'])
    op.create_index('idx_audit_resource', 'audit_logs', ['resource_type', 'resource_id'])
    op.create_index('idx_audit_created_at', 'audit_logs', ['created_at'])

    op.create_table(
        'empresas',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('codigo', sa.String(length=20), nullable=False, unique=True),
        sa.Column('cnpj', sa.String(length=14), nullable=False, unique=True),
        *_colunas_empresa(),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'socios',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('cpf', sa.String(length=11), nullable=False),
        *_colunas_socio(),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_socios_cpf', 'socios', ['cpf'], unique=True)

    op.create_table(
        'empresa_socios',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('empresa_id', sa.Integer(), sa.ForeignKey('empresas.id'), nullable=False),
        sa.Column('socio_id', sa.Integer(), sa.ForeignKey('socios.id'), nullable=False),
        sa.Column('participacao_percent', sa.Numeric(5, 2), nullable=False),
        sa.Column('ativo', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('empresa_id', 'socio_id', name='uq_empresa_socio'),
        sa.CheckConstraint(
            'participacao_percent >= 0 AND participacao_percent <= 100',
            name='ck_empresa_socio_participacao',
        ),
    )
    op.create_index('ix_empresa_socios_empresa_id', 'empresa_socios', ['empresa_id'])
    op.create_index('ix_empresa_socios_socio_id', 'empresa_socios', ['socio_id'])

    op.create_table(
        'empresa_historico',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('empresa_id', sa.Integer(), sa.ForeignKey('empresas.id'), nullable=False),
        sa.Column('codigo', sa.String(length=20), nullable=False),
        sa.Column('cnpj', sa.String(length=14), nullable=False),
        *_colunas_empresa(),
        sa.Column('origem', sa.String(length=30), nullable=False),
        sa.Column('snapshot_em', sa.DateTime(), nullable=False),
        sa.Column('usuario_id', sa.Integer(), sa.ForeignKey('users.id')),
    )
    op.create_index('idx_empresa_historico_empresa', 'empresa_historico', ['empresa_id', 'snapshot_em'])

    op.create_table(
        'socio_historico',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('socio_id', sa.Integer(), sa.ForeignKey('socios.id'), nullable=False),
        sa.Column('cpf', sa.String(length=11), nullable=False),
        *_colunas_socio(),
        sa.Column('empresa_id', sa.Integer(), sa.ForeignKey('empresas.id')),
        sa.Column('participacao_percent', sa.Numeric(5, 2)),
        sa.Column('origem', sa.String(length=30), nullable=False),
        sa.Column('snapshot_em', sa.DateTime(), nullable=False),
        sa.Column('usuario_id', sa.Integer(), sa.ForeignKey('users.id')),
    )
    op.create_index('idx_socio_historico_socio', 'socio_historico', ['socio_id', 'snapshot_em'])

    # Tabelas operacionais que bloqueiam a troca de codigo/CNPJ da empresa
    op.create_table(
        'funcionarios',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('empresa_id', sa.Integer(), sa.ForeignKey('empresas.id'), nullable=False),
        sa.Column('nome', sa.String(length=255), nullable=False),
        sa.Column('cpf', sa.String(length=11)),
        sa.Column('ativo', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_funcionarios_empresa_id', 'funcionarios', ['empresa_id'])

    op.create_table(
        'admissoes',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('empresa_id', sa.Integer(), sa.ForeignKey('empresas.id'), nullable=False),
        sa.Column('nome', sa.String(length=255), nullable=False),
        sa.Column('data_admissao', sa.Date()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_admissoes_empresa_id', 'admissoes', ['empresa_id'])

    op.create_table(
        'transferencias',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('empresa_origem_id', sa.Integer(), sa.ForeignKey('empresas.id'), nullable=False),
        sa.Column('empresa_destino_id', sa.Integer(), sa.ForeignKey('empresas.id'), nullable=False),
        sa.Column('funcionario_nome', sa.String(length=255)),
        sa.Column('data_transferencia', sa.Date()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_transferencias_empresa_origem_id', 'transferencias', ['empresa_origem_id'])
    op.create_index('ix_transferencias_empresa_destino_id', 'transferencias', ['empresa_destino_id'])

    op.create_table(
        'usuario_empresas',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('empresa_id', sa.Integer(), sa.ForeignKey('empresas.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'empresa_id', name='uq_usuario_empresa'),
    )
    op.create_index('ix_usuario_empresas_empresa_id', 'usuario_empresas', ['empresa_id'])


def downgrade():
    op.drop_table('usuario_empresas')
    op.drop_table('transferencias')
    op.drop_table('admissoes')
    op.drop_table('funcionarios')
    op.drop_table('socio_historico')
    op.drop_table('empresa_historico')
    op.drop_table('empresa_socios')
    op.drop_table('socios')
    op.drop_table('empresas')
    op.drop_table('audit_logs')
    op.drop_table('users')
