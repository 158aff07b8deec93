"""Blueprint de API JSON para empresas, quadro societario e consultas externas.

Respostas seguem ``{"success": true, ...}`` ou ``{"success": false, "error": ...}``
com 400 (validacao), 404 (inexistente) e 409 (conflito/persistencia).
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from app import db, limiter
from app.controllers.routes._error_handlers import api_error_response, status_para_erro
from app.controllers.routes.blueprints.empresas import usuario_atual_id
from app.models.tables import Socio
from app.services.cep import consultar_cep
from app.services.cnpj import consultar_cnpj
from app.services.empresas import (
    atualizar_empresa,
    criar_empresa,
    obter_empresa,
    serializar_empresa,
)
from app.services.exceptions import ReconciliationError, SocietarioError
from app.services.historico import (
    ORIGEM_API,
    listar_historico_empresa,
    listar_historico_socio,
    serializar_snapshot,
)
from app.services.quadro_societario import processar_quadro_societario
from app.services.socios import buscar_socios, desligar_socio, serializar_socio
from app.utils.audit import ActionType, ResourceType, log_user_action
from app.utils.documentos import validar_cpf
from app.utils.logging_utils import log_quadro_rejeitado

societario_api_bp = Blueprint("societario_api", __name__)


def _request_payload() -> dict:
    """Return payload from JSON or form submissions."""
    json_payload = request.get_json(silent=True)
    if isinstance(json_payload, dict) and json_payload:
        return json_payload
    if request.form:
        return request.form.to_dict()
    return {}


def _erro(exc: SocietarioError):
    extra = {}
    if isinstance(exc, ReconciliationError):
        extra["total"] = str(exc.total)
    return api_error_response(exc.message, status_para_erro(exc), **extra)


# =============================================================================
# EMPRESAS
# =============================================================================

@societario_api_bp.route("/api/empresas", methods=["POST"])
@login_required
def api_empresa_create():
    """Cria empresa via API."""
    try:
        empresa = criar_empresa(_request_payload(), ORIGEM_API, usuario_id=usuario_atual_id())
    except SocietarioError as exc:
        return _erro(exc)
    log_user_action(
        action_type=ActionType.CREATE,
        resource_type=ResourceType.COMPANY,
        action_description=f"Cadastrou a empresa {empresa.codigo} via API",
        resource_id=empresa.id,
    )
    return jsonify({"success": True, "item": serializar_empresa(empresa)}), 201


@societario_api_bp.route("/api/empresas/<int:empresa_id>", methods=["GET"])
@login_required
def api_empresa_detail(empresa_id: int):
    try:
        empresa = obter_empresa(empresa_id)
    except SocietarioError as exc:
        return _erro(exc)
    return jsonify({"success": True, "item": serializar_empresa(empresa, incluir_socios=True)})


@societario_api_bp.route("/api/empresas/<int:empresa_id>", methods=["POST"])
@login_required
def api_empresa_update(empresa_id: int):
    """Atualiza empresa via API (POST).

    Empresas com vinculos operacionais mantem codigo/CNPJ; os demais campos
    sao gravados e a resposta e 409 com ``parcial: true``.
    """
    try:
        empresa, conflito = atualizar_empresa(empresa_id, _request_payload(), ORIGEM_API, usuario_id=usuario_atual_id())
    except SocietarioError as exc:
        return _erro(exc)

    log_user_action(
        action_type=ActionType.UPDATE,
        resource_type=ResourceType.COMPANY,
        action_description=f"Atualizou a empresa {empresa.codigo} via API",
        resource_id=empresa.id,
    )
    if conflito is not None:
        return api_error_response(
            conflito.message,
            409,
            parcial=True,
            campos=list(conflito.campos),
            item=serializar_empresa(empresa),
        )
    return jsonify({"success": True, "item": serializar_empresa(empresa)})


@societario_api_bp.route("/api/empresas/<int:empresa_id>/historico", methods=["GET"])
@login_required
def api_empresa_historico(empresa_id: int):
    try:
        obter_empresa(empresa_id)
    except SocietarioError as exc:
        return _erro(exc)
    snapshots = listar_historico_empresa(empresa_id)
    return jsonify({
        "success": True,
        "items": [serializar_snapshot(s) for s in snapshots],
        "count": len(snapshots),
    })


# =============================================================================
# QUADRO SOCIETARIO
# =============================================================================

@societario_api_bp.route("/api/empresas/<int:empresa_id>/socios", methods=["GET"])
@login_required
def api_quadro_list(empresa_id: int):
    """Lista os socios ativos da empresa com a participacao atual."""
    try:
        empresa = obter_empresa(empresa_id)
    except SocietarioError as exc:
        return _erro(exc)
    items = [serializar_socio(v.socio, v) for v in empresa.socios_ativos]
    return jsonify({"success": True, "items": items, "count": len(items)})


@societario_api_bp.route("/api/empresas/<int:empresa_id>/socios", methods=["POST"])
@login_required
def api_quadro_save(empresa_id: int):
    """Grava o quadro societario completo (``socios``) e, opcionalmente, a ``empresa``."""
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return api_error_response("O corpo da requisição deve ser um objeto JSON.", 400)
    socios = payload.get("socios") or []
    dados_empresa = payload.get("empresa") or None
    if not isinstance(socios, list):
        return api_error_response("O campo 'socios' deve ser uma lista.", 400)
    if dados_empresa is not None and not isinstance(dados_empresa, dict):
        return api_error_response("O campo 'empresa' deve ser um objeto.", 400)
    invalidos = [s.get("cpf") for s in socios if isinstance(s, dict) and not validar_cpf(s.get("cpf"))]
    if invalidos:
        return api_error_response(f"CPF inválido: {invalidos[0]}", 400)

    try:
        resultado = processar_quadro_societario(
            empresa_id,
            socios,
            dados_empresa=dados_empresa,
            origem=ORIGEM_API,
            usuario_id=usuario_atual_id(),
        )
    except SocietarioError as exc:
        log_quadro_rejeitado(
            empresa_id,
            exc.message,
            [str(s.get("cpf", "")) for s in socios if isinstance(s, dict)],
        )
        return _erro(exc)

    empresa = resultado["empresa"]
    log_user_action(
        action_type=ActionType.UPDATE_ROSTER,
        resource_type=ResourceType.COMPANY,
        action_description=f"Atualizou o quadro societario da empresa {empresa.codigo} via API",
        resource_id=empresa.id,
        new_values={"socios": [s.cpf for s in resultado["socios"]]},
    )
    body = {
        "empresa_id": empresa.id,
        "socios": [serializar_socio(s) for s in resultado["socios"]],
        "total": str(resultado["total"]) if resultado["total"] is not None else None,
    }
    if resultado["conflito"] is not None:
        return api_error_response(resultado["conflito"].message, 409, parcial=True, **body)
    return jsonify({"success": True, **body})


@societario_api_bp.route("/api/empresas/<int:empresa_id>/socios/<int:socio_id>/desligar", methods=["POST"])
@login_required
def api_quadro_desligar(empresa_id: int, socio_id: int):
    try:
        vinculo = desligar_socio(empresa_id, socio_id)
    except SocietarioError as exc:
        return _erro(exc)
    log_user_action(
        action_type=ActionType.DISENGAGE,
        resource_type=ResourceType.PARTNER_LINK,
        action_description=f"Desligou o socio {socio_id} da empresa {empresa_id} via API",
        resource_id=socio_id,
    )
    return jsonify({"success": True, "empresa_id": vinculo.empresa_id, "socio_id": vinculo.socio_id, "ativo": vinculo.ativo})


# =============================================================================
# SOCIOS
# =============================================================================

@societario_api_bp.route("/api/socios", methods=["GET"])
@login_required
def api_socios_search():
    socios = buscar_socios(request.args.get("q"))
    return jsonify({"success": True, "items": [serializar_socio(s) for s in socios], "count": len(socios)})


@societario_api_bp.route("/api/socios/<int:socio_id>/historico", methods=["GET"])
@login_required
def api_socio_historico(socio_id: int):
    if db.session.get(Socio, socio_id) is None:
        return api_error_response("Sócio não encontrado.", 404)
    snapshots = listar_historico_socio(socio_id)
    return jsonify({
        "success": True,
        "items": [serializar_snapshot(s) for s in snapshots],
        "count": len(snapshots),
    })


# =============================================================================
# CONSULTAS EXTERNAS
# =============================================================================

@societario_api_bp.route("/api/cep/<cep>", methods=["GET"])
@login_required
@limiter.limit("30 per minute")
def api_cep(cep: str):
    """Endereco para preenchimento automatico (ViaCEP ou base configurada)."""
    try:
        endereco = consultar_cep(cep)
    except SocietarioError as exc:
        return _erro(exc)
    return jsonify({"success": True, **endereco})


@societario_api_bp.route("/api/cnpj/<cnpj>", methods=["GET"])
@login_required
@limiter.limit("30 per minute")
def api_cnpj(cnpj: str):
    """Dados publicos do CNPJ para preencher o cadastro de empresa."""
    try:
        dados = consultar_cnpj(cnpj)
    except SocietarioError as exc:
        return _erro(exc)
    if dados is None:
        return api_error_response("CNPJ não encontrado nas bases consultadas.", 404)
    return jsonify({"success": True, "item": dados})
