"""Schema v1 - Initial database schema.

This version includes tables for:
- Consignments, indexed by token and by consigner
- Executed consignment deals, indexed by consignment
- Consignment lock leases
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'consignments',
            'columns': [
                {'name': 'id', 'type': 'TEXT', 'primary_key': True},
                {'name': 'token_id', 'type': 'TEXT', 'nullable': False},
                {'name': 'chain', 'type': 'TEXT', 'nullable': False},
                {'name': 'consigner_address', 'type': 'TEXT', 'nullable': False},
                {'name': 'consigner_entity_id', 'type': 'TEXT', 'nullable': False},
                {'name': 'total_amount', 'type': 'NUMERIC(78, 0)', 'nullable': False},
                {'name': 'remaining_amount', 'type': 'NUMERIC(78, 0)', 'nullable': False},
                {'name': 'is_negotiable', 'type': 'BOOLEAN', 'nullable': False},
                {'name': 'fixed_discount_bps', 'type': 'INT4'},
                {'name': 'fixed_lockup_days', 'type': 'INT4'},
                {'name': 'min_discount_bps', 'type': 'INT4', 'nullable': False},
                {'name': 'max_discount_bps', 'type': 'INT4', 'nullable': False},
                {'name': 'min_lockup_days', 'type': 'INT4', 'nullable': False},
                {'name': 'max_lockup_days', 'type': 'INT4', 'nullable': False},
                {'name': 'min_deal_amount', 'type': 'NUMERIC(78, 0)', 'nullable': False},
                {'name': 'max_deal_amount', 'type': 'NUMERIC(78, 0)', 'nullable': False},
                {'name': 'is_fractionalized', 'type': 'BOOLEAN', 'default': 'false'},
                {'name': 'is_private', 'type': 'BOOLEAN', 'default': 'false'},
                {'name': 'allowed_buyers', 'type': 'TEXT[]'},
                {'name': 'max_price_volatility_bps', 'type': 'INT4', 'nullable': False},
                {'name': 'max_time_to_execute_seconds', 'type': 'INT8', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'active'"},
                {'name': 'contract_consignment_id', 'type': 'TEXT'},
                {'name': 'seq', 'type': 'BIGSERIAL'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'last_deal_at', 'type': 'TIMESTAMPTZ'}
            ],
            'checks': [
                'remaining_amount >= 0',
                'remaining_amount <= total_amount'
            ],
            'indexes': [
                {'name': 'idx_consignments_token', 'columns': ['token_id', 'seq']},
                {'name': 'idx_consignments_consigner', 'columns': ['consigner_address', 'seq']},
                {'name': 'idx_consignments_status', 'columns': ['status']}
            ]
        },
        {
            'name': 'consignment_deals',
            'columns': [
                {'name': 'id', 'type': 'TEXT', 'primary_key': True},
                {'name': 'consignment_id', 'type': 'TEXT', 'nullable': False},
                {'name': 'quote_id', 'type': 'TEXT', 'nullable': False},
                {'name': 'token_id', 'type': 'TEXT', 'nullable': False},
                {'name': 'buyer_address', 'type': 'TEXT', 'nullable': False},
                {'name': 'amount', 'type': 'NUMERIC(78, 0)', 'nullable': False},
                {'name': 'discount_bps', 'type': 'INT4', 'nullable': False},
                {'name': 'lockup_days', 'type': 'INT4', 'nullable': False},
                {'name': 'offer_id', 'type': 'TEXT'},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'executed'"},
                {'name': 'seq', 'type': 'BIGSERIAL'},
                {'name': 'executed_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['consignment_id'], 'references': 'consignments(id)'}
            ],
            'indexes': [
                {'name': 'idx_deals_consignment', 'columns': ['consignment_id', 'seq']},
                {'name': 'idx_deals_quote', 'columns': ['quote_id']}
            ]
        },
        {
            'name': 'consignment_locks',
            'columns': [
                {'name': 'key', 'type': 'TEXT', 'primary_key': True},
                {'name': 'token', 'type': 'TEXT', 'nullable': False},
                {'name': 'acquired_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'expires_at', 'type': 'TIMESTAMPTZ', 'nullable': False}
            ],
            'indexes': [
                {'name': 'idx_locks_expires', 'columns': ['expires_at']}
            ]
        }
    ]
}
