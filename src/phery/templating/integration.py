"""Jinja2 environment setup and rendering.

The environment is created once in ``App._freeze()``. The remote-call
HTML helpers are always registered as globals (``link_to``, ``form_for``,
``select_for``, ``phery_args``, plus ``csrf_meta`` when the app has a
dispatcher), so templates can wire elements to remote functions.
"""

from collections.abc import Callable
from contextvars import ContextVar
from functools import partial
from typing import Any

from jinja2 import Environment, FileSystemLoader
from markupsafe import Markup

from phery.config import AppConfig
from phery.errors import ConfigurationError
from phery.helpers import args, form_for, link_to, select_for
from phery.templating.returns import Fragment, InlineTemplate, Template

env_var: ContextVar[Environment | None] = ContextVar("phery_jinja_env", default=None)
"""The active app's environment. Set by the ASGI handler per request."""


def create_environment(
    config: AppConfig,
    filters: dict[str, Callable[..., Any]],
    globals_: dict[str, Any],
    phery: Any = None,
) -> Environment:
    """Create a Jinja2 Environment from app configuration.

    With *phery*, the helpers check that the functions they reference
    are registered, and ``csrf_meta()`` issues a token tag.
    """
    env = Environment(
        loader=FileSystemLoader(str(config.template_dir)),
        autoescape=config.autoescape,
        auto_reload=config.debug,
        trim_blocks=config.trim_blocks,
        lstrip_blocks=config.lstrip_blocks,
    )

    env.globals.update(
        link_to=partial(link_to, phery=phery),
        form_for=partial(form_for, phery=phery),
        select_for=partial(select_for, phery=phery),
        phery_args=args,
    )
    if phery is not None:
        env.globals["csrf_meta"] = lambda: Markup(phery.csrf())

    env.filters.update(filters)
    env.globals.update(globals_)
    return env


def render_template(env: Environment, tpl: Template) -> str:
    return env.get_template(tpl.name).render(tpl.context)


def render_fragment(env: Environment, frag: Fragment) -> str:
    """Render a single named block."""
    template = env.get_template(frag.template_name)
    block = template.blocks.get(frag.block_name)
    if block is None:
        msg = f"Template {frag.template_name!r} has no block {frag.block_name!r}"
        raise LookupError(msg)
    return "".join(block(template.new_context(frag.context)))


def render(value: Template | Fragment | InlineTemplate) -> Markup:
    """Render a template return type with the active app's environment.

    Usable inside remote functions; outside a request, inline templates
    fall back to a bare environment.
    """
    env = env_var.get()
    match value:
        case InlineTemplate():
            source_env = env or Environment(autoescape=True)
            return Markup(source_env.from_string(value.source).render(value.context))
        case Template() | Fragment() if env is None:
            msg = (
                f"Rendering {type(value).__name__} needs an app environment. "
                "Call render() while a request is being handled."
            )
            raise ConfigurationError(msg)
        case Template():
            return Markup(render_template(env, value))
        case Fragment():
            return Markup(render_fragment(env, value))
    msg = f"Cannot render {type(value).__name__}"
    raise TypeError(msg)
