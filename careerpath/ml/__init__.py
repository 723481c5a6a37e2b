from careerpath.ml.engine import Engine, GenerationError

__all__ = ["Engine", "GenerationError"]
