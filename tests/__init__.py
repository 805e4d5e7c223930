"""Test suite for keyforge.

Test Structure:
- unit/curves/: curve model, evaluation and editing algorithm tests
- unit/config/: configuration model and loader tests
- unit/utils/: logging and math helper tests
- unit/test_engine.py: CurveEngine facade tests
- conftest.py: shared keyframe and sequence fixtures
"""
