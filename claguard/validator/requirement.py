import bittensor as bt

from claguard.classes import LinkedItem, PullRequestRef
from claguard.validator.context import ClaContext


async def is_cla_required(ctx: ClaContext, item: LinkedItem, pull: PullRequestRef) -> bool:
    """Ask the document-check service whether the pull request needs a signed CLA.

    Fails safe: any error from the service means a signature is required.
    """
    try:
        return bool(await ctx.checks.is_cla_required(item, pull))
    except Exception as e:
        bt.logging.warning(f"Could not evaluate CLA requirement for {pull.full_name}, assuming required: {e}")
        return True
