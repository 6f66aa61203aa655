# Collection Names
COLLECTIONS = {
    'tenants': 'tenants',
    'users': 'users',
    'attendances': 'attendances',
    'inventory': 'inventory',
    'stock_movements': 'stock_movements',
    'audit_logs': 'audit_logs',
    'pending_effects': 'pending_effects',
    'counters': 'counters',
}

# Collection Structure Documentation
COLLECTION_SCHEMAS = {
    'tenants': {
        'fields': ['tenant_id', 'company_name', 'warranty_default_days', 'warranty_prefix', 'allow_custom_pricing', 'primary_color', 'logo_url'],
        'required': ['tenant_id', 'company_name', 'warranty_default_days', 'warranty_prefix'],
        'indexes': ['tenant_id']
    },
    'users': {
        'fields': ['tenant_id', 'email', 'name', 'role', 'created_at'],
        'required': ['tenant_id', 'email', 'name', 'role'],
        'indexes': ['tenant_id', 'email', 'role']
    },
    'attendances': {
        'fields': ['tenant_id', 'warranty_id', 'date', 'warranty_until', 'technician_id', 'technician_name', 'specialist_id', 'specialist_name', 'client_name', 'client_phone', 'device_model', 'device_imei', 'state', 'coverage', 'used_item_id', 'value_blindagem', 'value_pelicula', 'value_others', 'total_value', 'payment_method', 'photos', 'client_signature', 'is_deleted'],
        'required': ['tenant_id', 'warranty_id', 'date', 'warranty_until', 'client_name', 'device_model', 'coverage', 'value_blindagem', 'total_value', 'payment_method', 'client_signature'],
        'indexes': ['tenant_id', 'warranty_id', 'specialist_id', 'is_deleted', 'date']
    },
    'inventory': {
        'fields': ['tenant_id', 'sku', 'brand', 'model', 'type', 'material', 'category', 'current_stock', 'min_stock', 'supplier', 'cost_price', 'suggested_price', 'last_entry_date', 'assigned_specialist_id', 'assigned_specialist_name', 'observations'],
        'required': ['tenant_id', 'sku', 'brand', 'model', 'current_stock', 'min_stock'],
        'indexes': ['tenant_id', 'sku', 'assigned_specialist_id', 'current_stock']
    },
    'stock_movements': {
        'fields': ['tenant_id', 'item_id', 'type', 'quantity', 'previous_stock', 'new_stock', 'user_id', 'user_name', 'reason', 'related_attendance_id', 'timestamp'],
        'required': ['tenant_id', 'item_id', 'type', 'quantity', 'user_id'],
        'indexes': ['tenant_id', 'item_id', 'type', 'related_attendance_id', 'timestamp']
    },
    'audit_logs': {
        'fields': ['tenant_id', 'user_id', 'user_name', 'action', 'details', 'timestamp', 'target_id'],
        'required': ['tenant_id', 'user_id', 'action', 'details', 'timestamp'],
        'indexes': ['tenant_id', 'target_id', 'timestamp']
    },
    'pending_effects': {
        'fields': ['tenant_id', 'effect_type', 'attendance_id', 'item_id', 'attempts', 'last_error', 'status', 'created_at', 'updated_at'],
        'required': ['tenant_id', 'effect_type', 'attendance_id', 'status'],
        'indexes': ['tenant_id', 'status', 'attendance_id']
    },
    'counters': {
        'fields': ['tenant_id', 'year', 'counter', 'last_updated'],
        'required': ['year', 'counter'],
        'indexes': ['tenant_id', 'year']
    },
}
