"""Click command classes that carry the application context."""

from typing import Any

import click

from .context import get_current_context, inherit_context, set_context, AppContext


class ContextAwareGroup(click.Group):
    """
    Click group that records itself on the context's command stack.

    The root group creates the context when none exists yet.
    """

    def invoke(self, ctx: click.Context) -> Any:
        try:
            app_ctx = get_current_context()
        except ValueError:
            app_ctx = AppContext()
            set_context(app_ctx)

        app_ctx.push_command(ctx.info_name)
        try:
            return super().invoke(ctx)
        finally:
            app_ctx.pop_command()


class ContextAwareCommand(click.Command):
    """
    Click command that runs with a copy of its parent's context.

    Changes a command makes to its context do not leak back to the group.
    """

    def invoke(self, ctx: click.Context) -> Any:
        app_ctx = inherit_context()
        app_ctx.push_command(ctx.info_name)
        set_context(app_ctx)

        try:
            return super().invoke(ctx)
        finally:
            app_ctx.pop_command()
