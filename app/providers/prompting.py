from __future__ import annotations

from collections.abc import Iterable

from app.core.types import ChatMessage


def format_messages_as_prompt(messages: Iterable[ChatMessage], model_hint: str = "") -> str:
    """Flatten a chat transcript for completion-style backends.

    Llama-2 and Mistral-family models get their instruction markup; anything
    else gets plain ``role: content`` lines ending with an open assistant turn.
    """
    hint = model_hint.lower()
    turns = [message for message in messages if isinstance(message.content, str)]

    if "llama-2" in hint:
        parts: list[str] = []
        for message in turns:
            if message.role == "system":
                parts.append(f"<<SYS>>\n{message.content}\n<</SYS>>")
            elif message.role == "user":
                parts.append(f"[INST] {message.content} [/INST]")
            else:
                parts.append(message.content)
        return "\n\n".join(parts)

    if any(family in hint for family in ("mistral", "mixtral", "zephyr")):
        parts = []
        for message in turns:
            if message.role == "system":
                parts.append(f"<s>[INST] {message.content} [/INST]")
            elif message.role == "user":
                parts.append(f"[INST] {message.content} [/INST]")
            else:
                parts.append(message.content)
        return "\n".join(parts)

    lines = "\n\n".join(f"{message.role}: {message.content}" for message in turns)
    return f"{lines}\nassistant:"


def strip_prompt_echo(prompt: str, generated: str) -> str:
    if prompt and generated.startswith(prompt):
        return generated[len(prompt) :].strip()
    return generated.strip()


def bare_base64(image: str) -> str:
    if image.startswith("data:") and "," in image:
        return image.split(",", 1)[1]
    return image


def image_data_url(image: str) -> str:
    if image.startswith(("data:", "http://", "https://")):
        return image
    return f"data:image/png;base64,{image}"
