"""ukcompose - Compose-style orchestration for unikernel workloads

Philosophy:
- Ruthless simplicity
- Brick architecture (self-contained modules)
- Only tear down what we created
- Fail fast with helpful guidance

The ukcompose CLI validates a compose project, plans network addresses,
and drives every service through build, package, pull and run.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
