MAX_TENANTS = 4
MAX_ASSETS_PER_TENANT = 30


class QuotaEnforcer:
    """Pure capacity checks over counts. Callers own the counting."""

    def __init__(self, max_tenants: int = MAX_TENANTS, max_assets_per_tenant: int = MAX_ASSETS_PER_TENANT):
        self.max_tenants = max_tenants
        self.max_assets_per_tenant = max_assets_per_tenant

    def can_create_tenant(self, current_count: int) -> bool:
        return current_count < self.max_tenants

    def can_upload_assets(self, current_count: int, incoming_count: int) -> bool:
        return current_count + incoming_count <= self.max_assets_per_tenant

    def remaining_assets(self, current_count: int) -> int:
        return max(0, self.max_assets_per_tenant - current_count)
