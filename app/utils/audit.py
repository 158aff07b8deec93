"""User action auditing module for compliance and security."""

import logging
from functools import wraps
from typing import Optional, Dict, Any

from flask import request, g, has_request_context
from flask_login import current_user


user_actions_logger = logging.getLogger('user_actions')


class ActionType:
    """Constants for action types."""
    # Autenticacao
    LOGIN = 'login'
    LOGOUT = 'logout'
    FAILED_LOGIN = 'failed_login'

    # CRUD
    CREATE = 'create'
    UPDATE = 'update'
    VIEW = 'view'

    # Empresas / socios
    IMPORT = 'import'
    TOGGLE_STATUS = 'toggle_status'
    UPDATE_ROSTER = 'update_roster'
    DISENGAGE = 'disengage'


class ResourceType:
    """Constants for resource types."""
    USER = 'user'
    SESSION = 'session'
    COMPANY = 'company'
    PARTNER = 'partner'
    PARTNER_LINK = 'partner_link'


def log_user_action(
    action_type: str,
    resource_type: str,
    action_description: str,
    resource_id: Optional[int] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
):
    """Log a user action to both database and log files.

    Args:
        action_type: Type of action (use ActionType constants)
        resource_type: Type of resource affected (use ResourceType constants)
        action_description: Human-readable description of the action
        resource_id: Optional ID of the affected resource
        old_values: Optional dict of values before the change
        new_values: Optional dict of values after the change
    """
    from app import db
    from app.models.tables import AuditLog

    # Acoes de sistema (importacoes por script, testes) nao tem usuario
    if not has_request_context() or not current_user or not current_user.is_authenticated:
        return

    ip_address = request.remote_addr
    user_agent = request.headers.get('User-Agent')
    request_id = getattr(g, 'request_id', None)
    endpoint = request.endpoint

    audit_entry = AuditLog(
        user_id=current_user.id,
        username=current_user.username,
        action_type=action_type,
        resource_type=resource_type,
        resource_id=resource_id,
        action_description=action_description,
        old_values=old_values,
        new_values=new_values,
        ip_address=ip_address,
        user_agent=user_agent,
        request_id=request_id,
        endpoint=endpoint,
    )

    try:
        db.session.add(audit_entry)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        user_actions_logger.error(f"Failed to save audit log to database: {e}")

    log_message = (
        f"[{current_user.username}] {action_type.upper()} {resource_type} "
        f"(ID: {resource_id}) - {action_description} - IP: {ip_address}"
    )

    user_actions_logger.info(
        log_message,
        extra={
            'request_id': request_id,
            'user_id': current_user.id,
            'username': current_user.username,
            'action_type': action_type,
            'resource_type': resource_type,
            'resource_id': resource_id,
            'ip_address': ip_address,
            'old_values': old_values,
            'new_values': new_values,
        }
    )


def audit_action(action_type: str, resource_type: str, description_template: Optional[str] = None):
    """Decorator to log a user action after the view returns.

    The resource id is taken from the ``empresa_id`` or ``socio_id`` view argument.

    Example:
        @audit_action(ActionType.VIEW, ResourceType.COMPANY, "Consultou historico da empresa {empresa_id}")
        def historico(empresa_id):
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            result = f(*args, **kwargs)

            try:
                resource_id = kwargs.get('empresa_id') or kwargs.get('socio_id')
                description = description_template or f"{action_type.title()} {resource_type}"
                if description_template:
                    try:
                        description = description_template.format(**kwargs)
                    except (KeyError, ValueError):
                        pass

                log_user_action(
                    action_type=action_type,
                    resource_type=resource_type,
                    action_description=description,
                    resource_id=resource_id,
                )
            except Exception as e:
                user_actions_logger.error(f"Failed to log user action in decorator: {e}")

            return result
        return decorated_function
    return decorator
