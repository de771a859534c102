"""Deploy orchestration: create the VM, deliver every disk in order, clean up."""

import asyncio
import logging

from vmdock.artifacts import clean_name, discard, open_disk, resolve
from vmdock.artifacts.types import UploadSession
from vmdock.deploy.events import ProgressChannel
from vmdock.deploy.params import DeploymentRequest
from vmdock.errors import CleanupError, VmCreationError, VmdockError
from vmdock.provisioning.proxmox import ApiError, ProxmoxApi
from vmdock.transfer import select_strategy, slot_key

logger = logging.getLogger(__name__)


async def create_vm(api: ProxmoxApi, request: DeploymentRequest, channel: ProgressChannel):
    """Create the VM shell. An already existing VM id is tolerated and logged.

    Raises:
        VmCreationError: any other creation failure.
    """
    channel.log(f"Creating VM {request.vmid} ({request.name}) on node {request.node}...")
    try:
        await api.create_vm(request.node, request.vmid, request.name, request.memory, request.cores)
    except ApiError as e:
        if e.is_vmid_conflict:
            channel.log(f"VM ID {request.vmid} already exists, attempting to continue...")
            return
        raise VmCreationError(f"VM creation failed via API: {e}") from e
    channel.log(f"VM {request.vmid} created.")


async def run_deploy(request: DeploymentRequest, session: UploadSession, channel: ProgressChannel, api=None, connect=None) -> bool:
    """Run one deployment end to end, reporting through *channel*.

    Cleanup (transport session teardown, staging file removal) runs on every
    exit path before the terminal event is emitted.

    Args:
        request: deployment parameters.
        session: the staged upload; its staging file is owned and removed here.
        channel: progress channel; receives log events and exactly one terminal event.
        api: optional ProxmoxApi (default: built from request.api).
        connect: optional remote-shell connect callable, passed to the strategy.

    Returns:
        True on success, False on failure.
    """
    api = api or ProxmoxApi(request.api)
    strategy = None
    disks = []

    try:
        try:
            disks = resolve(session.disks, request.order)
            channel.log(f"Deploying {len(disks)} disk(s): {', '.join(d.name for d in disks)}")

            await create_vm(api, request, channel)

            strategy = select_strategy(request.ssh, api, progress=channel.log, connect=connect)

            for disk in disks:
                name = clean_name(disk.name)
                channel.log(f"[{disk.slot + 1}/{len(disks)}] {disk.name} -> {slot_key(disk.slot)}")
                with open_disk(session, disk) as stream:
                    outcome = await strategy.deliver(stream, name, request.vmid, request.storage, request.node, disk.slot)
                if not outcome.success:
                    raise outcome.error
        finally:
            await _cleanup(strategy, session, channel)
    except VmdockError as e:
        logger.debug("Deployment failed", exc_info=True)
        channel.error(str(e))
        return False
    except Exception as e:
        logger.exception("Unexpected deployment failure")
        channel.error(f"Unexpected error: {e}")
        return False

    channel.done(f"VM {request.vmid} created and {len(disks)} disk(s) imported successfully.")
    return True


async def _cleanup(strategy, session, channel):
    """Tear down the transport session and remove the staging file. Never raises."""
    if strategy is not None:
        try:
            await strategy.close()
        except Exception as e:
            channel.log(f"Warning: failed to close {strategy.name} session: {e}")
    try:
        discard(session)
    except CleanupError as e:
        channel.log(f"Warning: {e}")


async def deploy_events(request: DeploymentRequest, session: UploadSession, api=None, connect=None):
    """Run a deployment and yield its progress events until the terminal one."""
    channel = ProgressChannel()
    task = asyncio.create_task(run_deploy(request, session, channel, api=api, connect=connect))
    task.add_done_callback(lambda t: _ensure_terminal(t, channel))
    async for event in channel:
        yield event
    await task


def _ensure_terminal(task: asyncio.Task, channel: ProgressChannel):
    # run_deploy always emits a terminal event unless it was cancelled
    if channel.closed:
        return
    if task.cancelled():
        channel.error("Deployment was cancelled")
    else:
        channel.error(f"Deployment ended without a result: {task.exception()}")
