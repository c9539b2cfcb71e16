from voice_builder.utils.parsing import extract_json_object

__all__ = ["extract_json_object"]
