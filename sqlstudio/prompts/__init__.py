from sqlstudio.prompts.loader import PromptLoader

__all__ = ["PromptLoader"]
