from .parser import extract_content, extract_code_block, extract_rationale, check_completeness

__all__ = ["extract_content", "extract_code_block", "extract_rationale", "check_completeness"]
