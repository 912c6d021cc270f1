"""ukcompose modules - Self-contained bricks following the brick philosophy

Each module is a self-contained component with clear contracts:
- Compose: Load, validate and orchestrate compose projects
- Progress Display: Show real-time progress
"""
