"""Prompt template compilation for the emoji model.

The ``fofr/sdxl-emoji`` model was fine-tuned with the trigger token ``TOK``;
prompts only produce emoji-style output when they mention it.  The user types
a plain description ("a happy cat") and the service wraps it in a fixed
trigger-phrase template before calling the provider::

    A TOK emoji of a happy cat

The template is configurable (``EMOJIMAKER_PROMPT_TEMPLATE``) and must contain
a single ``{prompt}`` placeholder.  The stored :class:`EmojiRecord` keeps the
user's original text, never the compiled prompt.
"""

from __future__ import annotations

from emojimaker.core.errors import ConfigurationMissing, ValidationFailed

DEFAULT_TEMPLATE = "A TOK emoji of {prompt}"


def clean_prompt(prompt: str | None) -> str:
    """Return the prompt stripped of surrounding whitespace.

    Raises:
        ValidationFailed: If the prompt is missing, empty or whitespace-only.
    """
    if prompt is None or not prompt.strip():
        raise ValidationFailed("Prompt is required")
    return prompt.strip()


def build_prompt(prompt: str, template: str = DEFAULT_TEMPLATE) -> str:
    """Wrap a user prompt in the trigger-phrase template.

    Args:
        prompt: The user's description.  Surrounding whitespace is removed.
        template: Format string with a ``{prompt}`` placeholder.

    Returns:
        The compiled prompt sent to the provider.

    Raises:
        ValidationFailed: If ``prompt`` is empty.
        ConfigurationMissing: If ``template`` has no ``{prompt}`` placeholder.
    """
    cleaned = clean_prompt(prompt)
    if "{prompt}" not in template:
        raise ConfigurationMissing("Prompt template must contain a {prompt} placeholder")
    # str.replace rather than str.format so braces in user text are inert
    return template.replace("{prompt}", cleaned)
