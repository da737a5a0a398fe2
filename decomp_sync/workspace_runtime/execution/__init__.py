"""Build pipeline for the workspace runtime.

- **resolver**: Config normalization (raw ``objdiff.json`` -> resolved ``ProjectConfig``)
- **executor**: Command execution strategies (terminal / capturing)
- **builder**: Build orchestration (guard -> target -> base -> diff -> publish)
- **diff_engine**: External diff binary invocation
"""
