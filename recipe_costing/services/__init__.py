"""Services package - Business logic layer for Recipe Costing.

Costing engine (pure, no I/O):
- unit_converter: Unit normalization and conversion
- ingredient_cost_index: Read-only ingredient price lookup per costing pass
- line_resolver: Net/gross/yield and cost of a single line
- cost_aggregator: Recursive recipe cost with cycle and depth protection
- pricing_service: Cost per portion, food cost, margin, suggested price
- scaling_service: Rescale quantities to a different number of servings

Persistence and batch:
- database: Session management and database utilities
- costing_data_service: Build CostingSnapshot objects from the database
- cost_history_service: Per-recipe cost snapshot log and its stores
- ingredient_pricing_service: Net unit cost from pack data
- batch_costing_service: Concurrent recalculation of ingredients and recipes
- cost_diagnostics_service: Kitchen-wide dashboard summary

Infrastructure:
- exceptions: ServiceError hierarchy
- logging_utils: Structured service logging
- dto, dto_utils: Engine records and coercion helpers
"""
