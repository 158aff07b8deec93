"""
Blueprint para consulta e manutencao de socios.

Rotas:
    - GET /socios: Busca por nome ou CPF
    - GET/POST /socios/<id>/editar: Dados pessoais do socio
    - POST /socios/<id>/desligar/<empresa_id>: Inativa o vinculo com a empresa
    - GET /socios/<id>/historico: Snapshots do socio

Dependencias:
    - models: Socio
    - forms: SocioForm
    - services: socios, historico
"""

from flask import Blueprint, abort, flash, redirect, render_template, request, url_for
from flask_login import login_required

from app import db
from app.controllers.routes.blueprints.empresas import usuario_atual_id
from app.forms import SocioForm
from app.models.tables import Socio
from app.services.exceptions import SocietarioError
from app.services.historico import ORIGEM_FORMULARIO_SOCIO, listar_historico_socio
from app.services.socios import atualizar_socio, buscar_socios, desligar_socio
from app.utils.audit import ActionType, ResourceType, audit_action, log_user_action

socios_bp = Blueprint('socios', __name__)


def _obter_socio_or_404(socio_id: int) -> Socio:
    socio = db.session.get(Socio, socio_id)
    if socio is None:
        abort(404)
    return socio


@socios_bp.route("/socios")
@login_required
def listar():
    search = request.args.get("q", "").strip()
    return render_template("socios/listar.html", socios=buscar_socios(search), search=search)


@socios_bp.route("/socios/<int:socio_id>/editar", methods=["GET", "POST"])
@login_required
def editar(socio_id: int):
    """Edit the personal data of a partner (participations are edited per company)."""
    socio = _obter_socio_or_404(socio_id)
    form = SocioForm(obj=socio)

    if form.validate_on_submit():
        try:
            atualizar_socio(socio.id, form.dados_socio(), ORIGEM_FORMULARIO_SOCIO, usuario_id=usuario_atual_id())
        except SocietarioError as exc:
            flash(exc.message, "danger")
        else:
            log_user_action(
                action_type=ActionType.UPDATE,
                resource_type=ResourceType.PARTNER,
                action_description=f"Atualizou os dados do socio {socio.nome}",
                resource_id=socio.id,
            )
            flash("Dados do sócio salvos com sucesso!", "success")
            return redirect(url_for("socios.editar", socio_id=socio.id))

    return render_template("socios/form.html", form=form, socio=socio)


@socios_bp.route("/socios/<int:socio_id>/desligar/<int:empresa_id>", methods=["POST"])
@login_required
def desligar(socio_id: int, empresa_id: int):
    """Deactivate the partner link; history and the link row are kept."""
    try:
        desligar_socio(empresa_id, socio_id)
    except SocietarioError as exc:
        flash(exc.message, "danger")
    else:
        log_user_action(
            action_type=ActionType.DISENGAGE,
            resource_type=ResourceType.PARTNER_LINK,
            action_description=f"Desligou o socio {socio_id} da empresa {empresa_id}",
            resource_id=socio_id,
            new_values={"empresa_id": empresa_id, "ativo": False},
        )
        flash("Sócio desligado da empresa.", "success")
    return redirect(request.referrer or url_for("empresas.editar", empresa_id=empresa_id))


@socios_bp.route("/socios/<int:socio_id>/historico")
@login_required
@audit_action(ActionType.VIEW, ResourceType.PARTNER, "Consultou o historico do socio {socio_id}")
def historico(socio_id: int):
    socio = _obter_socio_or_404(socio_id)
    return render_template(
        "socios/historico.html",
        socio=socio,
        snapshots=listar_historico_socio(socio.id),
    )
