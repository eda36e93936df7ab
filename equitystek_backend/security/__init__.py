from .auth_enhancement import SecurityEnforcer, client_ip
from .rbac import admin_required, current_user_id, get_current_user, require_role
