"""
Environment resolution for business functions.

Functions declare a pydantic model of the variables they need; values are
parsed with aws-lambda-env-modeler and handed over as a flat mapping.
"""

import os
from typing import Any, Dict, Iterable, Optional, Type

from aws_lambda_env_modeler import get_environment_variables
from pydantic import BaseModel

from handler_kit.handlers.utils.errors import ConfigurationError


def resolve_env(env_model: Optional[Type[BaseModel]] = None, keys: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Resolve the environment exposed to a business function.

    Args:
        env_model: Pydantic model describing the variables; None reads raw values
        keys: Optional subset of variables to expose

    Returns:
        Mapping of variable name to (typed) value

    Raises:
        ConfigurationError: A declared variable is missing or invalid
    """
    keys = tuple(keys)

    if env_model is None:
        missing = [key for key in keys if key not in os.environ]
        if missing:
            raise ConfigurationError(f'Missing environment variables: {missing}')
        return {key: os.environ[key] for key in keys}

    try:
        values = get_environment_variables(model=env_model).model_dump()
    except ValueError as exc:
        raise ConfigurationError(f'Invalid environment for {env_model.__name__}: {exc}') from exc

    if not keys:
        return values
    missing = [key for key in keys if key not in values]
    if missing:
        raise ConfigurationError(f'{env_model.__name__} does not define environment variables: {missing}')
    return {key: values[key] for key in keys}
