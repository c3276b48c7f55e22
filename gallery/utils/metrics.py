"""Prometheus metrics for the media store"""
from prometheus_client import Counter

uploads_total = Counter(
    'gallery_uploads_total',
    'Per-file upload outcomes',
    ['outcome']  # stored, quota_exceeded, unsupported_type, file_too_large, backend_unavailable, ...
)

storage_operations = Counter(
    'gallery_storage_operations_total',
    'Total number of blob store operations',
    ['backend', 'operation', 'status']
)

tenants_deleted_total = Counter(
    'gallery_tenants_deleted_total',
    'Total number of tenant deletions that completed'
)
