"""
Blueprint para gestao de empresas.

Cadastro e edicao de empresas, edicao do quadro societario junto com os
dados da empresa, ativacao/inativacao, historico e importacao de CSV.

Rotas:
    - GET /empresas: Lista empresas (busca e paginacao)
    - GET/POST /empresas/cadastro: Cadastro de empresa
    - GET/POST /empresas/<id>/editar: Edita empresa e quadro societario
    - POST /empresas/<id>/status: Ativa/inativa empresa
    - GET/POST /empresas/importar: Importacao do CSV do ERP
    - GET /empresas/<id>/historico: Snapshots da empresa

Dependencias:
    - models: Empresa
    - forms: EmpresaForm, EmpresaEditForm, ImportarEmpresasForm
    - services: empresas, quadro_societario, importacao_empresas, historico
"""

from types import SimpleNamespace

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from app.controllers.routes._decorators import admin_required
from app.forms import EmpresaEditForm, EmpresaForm, ImportarEmpresasForm
from app.services.empresas import (
    alternar_status,
    consultar_empresas,
    criar_empresa,
    obter_empresa,
    possui_vinculos,
)
from app.services.exceptions import SocietarioError
from app.services.historico import ORIGEM_FORMULARIO_EMPRESA, listar_historico_empresa
from app.services.importacao_empresas import importar_empresas_csv
from app.services.quadro_societario import salvar_quadro_societario
from app.utils.audit import ActionType, ResourceType, audit_action, log_user_action

# =============================================================================
# BLUEPRINT DEFINITION
# =============================================================================

empresas_bp = Blueprint('empresas', __name__)


def usuario_atual_id():
    """Id do usuario autenticado, ou None (LOGIN_DISABLED/testes)."""
    return current_user.id if current_user.is_authenticated else None


def _flash_form_errors(form) -> None:
    for field, errors in form.errors.items():
        for error in errors:
            if isinstance(error, dict):
                # Erros de linhas do quadro (FieldList/FormField)
                for sub_field, sub_errors in error.items():
                    for sub_error in sub_errors:
                        flash(f"Sócio - {sub_field}: {sub_error}", "danger")
            elif isinstance(error, list):
                for sub_error in error:
                    flash(f"Erro: {sub_error}", "danger")
            else:
                flash(f"Erro em {field}: {error}", "danger")


def _carregar_quadro(form: EmpresaEditForm, empresa) -> None:
    for vinculo in empresa.socios_ativos:
        form.socios.append_entry(
            SimpleNamespace(
                **vinculo.socio.campos_snapshot(),
                participacao=f"{vinculo.participacao_percent:.2f}",
            )
        )


# =============================================================================
# ROTAS
# =============================================================================

@empresas_bp.route("/empresas")
@login_required
def listar():
    """List companies with optional search and pagination."""
    search = request.args.get("q", "").strip()
    page = request.args.get("page", 1, type=int)
    per_page = current_app.config.get("EMPRESAS_PER_PAGE", 20)
    show_inactive = request.args.get("show_inactive") in ("1", "on", "true", "True")

    pagination = consultar_empresas(search, mostrar_inativas=show_inactive).paginate(
        page=page, per_page=per_page, error_out=False
    )
    return render_template(
        "empresas/listar.html",
        empresas=pagination.items,
        pagination=pagination,
        search=search,
        show_inactive=show_inactive,
    )


@empresas_bp.route("/empresas/cadastro", methods=["GET", "POST"])
@login_required
def cadastrar():
    """Register a new company."""
    form = EmpresaForm()
    if form.validate_on_submit():
        try:
            empresa = criar_empresa(form.dados_empresa(), ORIGEM_FORMULARIO_EMPRESA, usuario_id=usuario_atual_id())
        except SocietarioError as exc:
            flash(exc.message, "danger")
        else:
            log_user_action(
                action_type=ActionType.CREATE,
                resource_type=ResourceType.COMPANY,
                action_description=f"Cadastrou a empresa {empresa.codigo} - {empresa.razao_social}",
                resource_id=empresa.id,
            )
            flash("Empresa cadastrada com sucesso!", "success")
            return redirect(url_for("empresas.editar", empresa_id=empresa.id))
    elif form.is_submitted():
        _flash_form_errors(form)

    return render_template("empresas/form.html", form=form, empresa=None, campos_bloqueados=False)


@empresas_bp.route("/empresas/<int:empresa_id>/editar", methods=["GET", "POST"])
@login_required
def editar(empresa_id: int):
    """Edit a company together with its partner roster.

    The roster is saved as one batch: participations must total 100% and
    every partner is upserted by CPF. An empty roster only updates the
    company fields.
    """
    empresa = obter_empresa(empresa_id)
    form = EmpresaEditForm()

    if form.validate_on_submit():
        quadro = form.quadro_societario()
        resultado = salvar_quadro_societario(
            empresa.id,
            quadro,
            dados_empresa=form.dados_empresa(),
            origem=ORIGEM_FORMULARIO_EMPRESA,
            usuario_id=usuario_atual_id(),
        )
        if resultado["success"] or resultado.get("parcial"):
            log_user_action(
                action_type=ActionType.UPDATE_ROSTER if quadro else ActionType.UPDATE,
                resource_type=ResourceType.COMPANY,
                action_description=f"Atualizou a empresa {empresa.codigo} ({len(quadro)} socios)",
                resource_id=empresa.id,
                new_values={"socios": [s.get("cpf") for s in quadro]},
            )
        if resultado["success"]:
            flash("Dados da empresa salvos com sucesso!", "success")
            return redirect(url_for("empresas.editar", empresa_id=empresa.id))
        if resultado.get("parcial"):
            flash(resultado["error"], "warning")
            return redirect(url_for("empresas.editar", empresa_id=empresa.id))
        flash(resultado["error"], "danger")
    elif form.is_submitted():
        _flash_form_errors(form)
    else:
        form.preencher(empresa)
        _carregar_quadro(form, empresa)

    return render_template(
        "empresas/form.html",
        form=form,
        empresa=empresa,
        campos_bloqueados=possui_vinculos(empresa.id),
    )


@empresas_bp.route("/empresas/<int:empresa_id>/status", methods=["POST"])
@login_required
def alterar_status(empresa_id: int):
    """Toggle the active flag of a company."""
    empresa = alternar_status(empresa_id, usuario_id=usuario_atual_id())
    log_user_action(
        action_type=ActionType.TOGGLE_STATUS,
        resource_type=ResourceType.COMPANY,
        action_description=f"{'Ativou' if empresa.ativo else 'Inativou'} a empresa {empresa.codigo}",
        resource_id=empresa.id,
        new_values={"ativo": empresa.ativo},
    )
    flash("Empresa ativada." if empresa.ativo else "Empresa inativada.", "success")
    return redirect(request.referrer or url_for("empresas.listar"))


@empresas_bp.route("/empresas/importar", methods=["GET", "POST"])
@admin_required
def importar():
    """Import companies from the ERP CSV export."""
    form = ImportarEmpresasForm()
    if form.validate_on_submit():
        conteudo = form.arquivo.data.read()
        try:
            resultado = importar_empresas_csv(conteudo, usuario_id=usuario_atual_id())
        except SocietarioError as exc:
            flash(exc.message, "danger")
        else:
            log_user_action(
                action_type=ActionType.IMPORT,
                resource_type=ResourceType.COMPANY,
                action_description="Importou empresas via CSV",
                new_values={"count": resultado["count"], "errors": resultado["errors"]},
            )
            categoria = "success" if not resultado["errors"] else "warning"
            flash(
                f"{resultado['count']} empresa(s) importada(s); {resultado['errors']} linha(s) com erro.",
                categoria,
            )
            return redirect(url_for("empresas.listar"))
    elif form.is_submitted():
        _flash_form_errors(form)

    return render_template("empresas/importar.html", form=form)


@empresas_bp.route("/empresas/<int:empresa_id>/historico")
@login_required
@audit_action(ActionType.VIEW, ResourceType.COMPANY, "Consultou o historico da empresa {empresa_id}")
def historico(empresa_id: int):
    """Show every snapshot of a company, newest first."""
    empresa = obter_empresa(empresa_id)
    return render_template(
        "empresas/historico.html",
        empresa=empresa,
        snapshots=listar_historico_empresa(empresa.id),
    )
