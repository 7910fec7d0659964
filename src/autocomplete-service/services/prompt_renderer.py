"""Prompt Renderer - Fills the operator-configured prompt template"""
from models import AutocompleteSettings, WordContext
from services.context_extractor import extract_word_context


def render_prompt(template: str, left: str, partial: str, right: str, mode: str) -> str:
    """Literal placeholder substitution, no escaping"""
    return (
        template
        .replace("{{left}}", left)
        .replace("{{partial}}", partial)
        .replace("{{right}}", right)
        .replace("{{mode}}", mode)
    )


def build_prompt(context: WordContext, autocomplete_settings: AutocompleteSettings) -> str:
    return render_prompt(
        autocomplete_settings.prompt_template,
        left=context.left_context,
        partial=context.partial_word,
        right=context.right_context if autocomplete_settings.use_suffix_context else "",
        mode=autocomplete_settings.mode,
    )


def build_autocomplete_prompt(
    text: str,
    cursor_index: int,
    autocomplete_settings: AutocompleteSettings
) -> str:
    return build_prompt(extract_word_context(text, cursor_index), autocomplete_settings)
