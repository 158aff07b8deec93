"""Database models used by the application."""

from flask_login import UserMixin
from sqlalchemy import event
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash, check_password_hash

from app import db
from app.models._mixins import EmpresaCamposMixin, SocioCamposMixin
from app.services.exceptions import HistoricoImutavelError
from app.utils.datetime_utils import now_naive


class User(db.Model, UserMixin):
    """Application user account."""
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    ativo = db.Column(db.Boolean, default=True)
    role = db.Column(db.String(20), default='user')
    last_seen = db.Column(db.DateTime, default=now_naive)

    def set_password(self, password):
        """Hash and store the user's password."""
        self.password = generate_password_hash(password)

    def check_password(self, password):
        """Validate a plaintext password against the stored hash."""
        return check_password_hash(self.password, password)

    @property
    def is_active(self):
        """Return True if the user is marked as active."""
        return self.ativo

    @property
    def is_admin(self):
        return self.role == 'admin'


class AuditLog(db.Model):
    """Comprehensive audit trail for all user actions."""
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index('idx_audit_user_id', 'user_id'),
        db.Index('idx_audit_action_type', 'action_type'),
        db.Index('idx_audit_resource', 'resource_type', 'resource_id'),
        db.Index('idx_audit_created_at', 'created_at'),
    )

    id = db.Column(db.Integer, primary_key=True)

    # Usuario que executou a acao
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    username = db.Column(db.String(80), nullable=False)  # Denormalizado para historico

    # Contexto da acao
    action_type = db.Column(db.String(50), nullable=False)
    resource_type = db.Column(db.String(50), nullable=False)  # 'company', 'partner', ...
    resource_id = db.Column(db.Integer, nullable=True)

    # Detalhes da acao
    action_description = db.Column(db.String(255), nullable=False)
    old_values = db.Column(db.JSON, nullable=True)
    new_values = db.Column(db.JSON, nullable=True)

    # Contexto de rede
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.Text, nullable=True)

    request_id = db.Column(db.String(50), nullable=True)
    endpoint = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=now_naive, nullable=False)

    user = db.relationship('User', backref=db.backref('audit_logs', lazy='dynamic'))

    def __repr__(self):
        return f"<AuditLog {self.username} {self.action_type} {self.resource_type}:{self.resource_id}>"


class Empresa(EmpresaCamposMixin, db.Model):
    """Company registered in the system."""
    __tablename__ = 'empresas'
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    codigo = db.Column(db.String(20), unique=True, nullable=False)
    cnpj = db.Column(db.String(14), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=now_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=now_naive, onupdate=now_naive, nullable=False)

    vinculos = db.relationship(
        'EmpresaSocio',
        back_populates='empresa',
        order_by='EmpresaSocio.id',
        lazy='selectin',
    )

    @property
    def nome_exibicao(self):
        return self.nome_fantasia or self.razao_social

    @property
    def socios_ativos(self):
        """Active partner links ordered by insertion."""
        return [v for v in self.vinculos if v.ativo]

    def __repr__(self):
        return f"<Empresa {self.codigo} {self.razao_social}>"


class Socio(SocioCamposMixin, db.Model):
    """Natural person holding equity in one or more companies."""
    __tablename__ = 'socios'
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    cpf = db.Column(db.String(11), unique=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=now_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=now_naive, onupdate=now_naive, nullable=False)

    vinculos = db.relationship('EmpresaSocio', back_populates='socio', lazy=True)

    def __repr__(self):
        return f"<Socio {self.cpf} {self.nome}>"


class EmpresaSocio(db.Model):
    """Current participation of a partner in a company."""
    __tablename__ = 'empresa_socios'
    __table_args__ = (
        db.UniqueConstraint('empresa_id', 'socio_id', name='uq_empresa_socio'),
        db.CheckConstraint(
            'participacao_percent >= 0 AND participacao_percent <= 100',
            name='ck_empresa_socio_participacao',
        ),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    empresa_id = db.Column(db.Integer, db.ForeignKey('empresas.id'), nullable=False, index=True)
    socio_id = db.Column(db.Integer, db.ForeignKey('socios.id'), nullable=False, index=True)
    participacao_percent = db.Column(db.Numeric(5, 2), nullable=False)
    ativo = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=now_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=now_naive, onupdate=now_naive, nullable=False)

    empresa = db.relationship('Empresa', back_populates='vinculos')
    socio = db.relationship('Socio', back_populates='vinculos')

    def __repr__(self):
        return f"<EmpresaSocio empresa={self.empresa_id} socio={self.socio_id} {self.participacao_percent}%>"


class EmpresaHistorico(EmpresaCamposMixin, db.Model):
    """Immutable snapshot of a company written on every accepted change."""
    __tablename__ = 'empresa_historico'
    __table_args__ = (
        db.Index('idx_empresa_historico_empresa', 'empresa_id', 'snapshot_em'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    empresa_id = db.Column(db.Integer, db.ForeignKey('empresas.id'), nullable=False)
    codigo = db.Column(db.String(20), nullable=False)
    cnpj = db.Column(db.String(14), nullable=False)
    origem = db.Column(db.String(30), nullable=False)
    snapshot_em = db.Column(db.DateTime, default=now_naive, nullable=False)
    usuario_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    def __repr__(self):
        return f"<EmpresaHistorico empresa={self.empresa_id} origem={self.origem}>"


class SocioHistorico(SocioCamposMixin, db.Model):
    """Immutable snapshot of a partner written on every accepted change."""
    __tablename__ = 'socio_historico'
    __table_args__ = (
        db.Index('idx_socio_historico_socio', 'socio_id', 'snapshot_em'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    socio_id = db.Column(db.Integer, db.ForeignKey('socios.id'), nullable=False)
    cpf = db.Column(db.String(11), nullable=False)
    empresa_id = db.Column(db.Integer, db.ForeignKey('empresas.id'), nullable=True)
    participacao_percent = db.Column(db.Numeric(5, 2), nullable=True)
    origem = db.Column(db.String(30), nullable=False)
    snapshot_em = db.Column(db.DateTime, default=now_naive, nullable=False)
    usuario_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    def __repr__(self):
        return f"<SocioHistorico socio={self.socio_id} origem={self.origem}>"


HISTORICO_MODELS = (EmpresaHistorico, SocioHistorico)


@event.listens_for(EmpresaHistorico, 'before_update')
@event.listens_for(SocioHistorico, 'before_update')
def _bloquear_update_historico(mapper, connection, target):
    """Snapshots are write-once."""
    raise HistoricoImutavelError(
        f"Registros de histórico não podem ser alterados ({type(target).__name__} #{target.id})."
    )


@event.listens_for(EmpresaHistorico, 'before_delete')
@event.listens_for(SocioHistorico, 'before_delete')
def _bloquear_delete_historico(mapper, connection, target):
    raise HistoricoImutavelError(
        f"Registros de histórico não podem ser removidos ({type(target).__name__} #{target.id})."
    )


@event.listens_for(Session, 'do_orm_execute')
def _bloquear_bulk_historico(orm_execute_state):
    """Reject ``update()``/``delete()`` statements targeting snapshot tables."""
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    mapper = orm_execute_state.bind_mapper
    if mapper is not None and mapper.class_ in HISTORICO_MODELS:
        raise HistoricoImutavelError("Registros de histórico são somente inserção.")


class Funcionario(db.Model):
    """Employee of a client company."""
    __tablename__ = 'funcionarios'
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    empresa_id = db.Column(db.Integer, db.ForeignKey('empresas.id'), nullable=False, index=True)
    nome = db.Column(db.String(255), nullable=False)
    cpf = db.Column(db.String(11))
    ativo = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=now_naive, nullable=False)

    empresa = db.relationship('Empresa', backref=db.backref('funcionarios', lazy='dynamic'))


class Admissao(db.Model):
    """Admission request registered for a company."""
    __tablename__ = 'admissoes'
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    empresa_id = db.Column(db.Integer, db.ForeignKey('empresas.id'), nullable=False, index=True)
    nome = db.Column(db.String(255), nullable=False)
    data_admissao = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=now_naive, nullable=False)


class Transferencia(db.Model):
    """Employee transfer between two companies."""
    __tablename__ = 'transferencias'
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    empresa_origem_id = db.Column(db.Integer, db.ForeignKey('empresas.id'), nullable=False, index=True)
    empresa_destino_id = db.Column(db.Integer, db.ForeignKey('empresas.id'), nullable=False, index=True)
    funcionario_nome = db.Column(db.String(255))
    data_transferencia = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=now_naive, nullable=False)


class UsuarioEmpresa(db.Model):
    """Company assigned to a portal user."""
    __tablename__ = 'usuario_empresas'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'empresa_id', name='uq_usuario_empresa'),
    )
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    empresa_id = db.Column(db.Integer, db.ForeignKey('empresas.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=now_naive, nullable=False)
