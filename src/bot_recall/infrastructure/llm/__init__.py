from .anthropic_client import AnthropicLanguageModel
from .parsing import extract_json_array, extract_json_object, strip_code_fences

__all__ = ["AnthropicLanguageModel", "extract_json_array", "extract_json_object", "strip_code_fences"]
