"""Test suite for the formengine package.

This package contains tests for:
- Condition evaluation (operators, AND-lists, fail-open handling)
- Field and form validation (rule order, emptiness, custom predicates)
- Schema documents (parsing, structural validation, serialization)
- Schema introspection (defaults, layout traversal, dependencies)
- Input normalization per renderer
- Event system (emission, serialization)
- FormStore state management and integration scenarios (submit lifecycle)
"""
