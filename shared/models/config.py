from typing import Literal

from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single environment setting a client needs.

    The full variable name is built by the client as
    ``<CLIENT_TYPE>_<ENGINE>_<ENV_KEY>``, e.g. ``LLM_OPENAI_API_KEY``.

    Attributes:
        env_key (str): Key suffix of the environment variable.
        val_type (str): How the raw value is parsed.
        default: Value used when the variable is unset. None makes the setting mandatory.
    """

    env_key: str
    val_type: Literal["string", "number", "bool", "list"] = "string"
    default: str | int | float | bool | list | None = None
