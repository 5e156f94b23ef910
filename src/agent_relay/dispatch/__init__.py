"""Mailbox dispatch to a persistent browser agent.

The agent is a long-running interactive session (browser state, cookies,
in-flight context) that cannot be spawned per task. Jobs write a task file to
``pending/``, the agent picks it up on its own schedule and writes
``done/{jid}.json``; the dispatcher only polls for that file. There is no
broker and no cancellation: a task that times out stays pending until
something outside this package cleans it up.
"""

from agent_relay.dispatch.gate import EnvironmentProbe, MacOsEnvironmentProbe, PreconditionGate
from agent_relay.dispatch.jobs import (
    ActionJob,
    BrowserJob,
    JobError,
    JobRuntime,
    TaskFailedError,
    TaskTimeoutError,
)
from agent_relay.dispatch.mailbox import TaskMailbox
from agent_relay.dispatch.models import Blocked, JobResult, Ready
from agent_relay.dispatch.poller import ResultPoller

__all__ = [
    "ActionJob",
    "Blocked",
    "BrowserJob",
    "EnvironmentProbe",
    "JobError",
    "JobResult",
    "JobRuntime",
    "MacOsEnvironmentProbe",
    "PreconditionGate",
    "Ready",
    "ResultPoller",
    "TaskFailedError",
    "TaskMailbox",
    "TaskTimeoutError",
]
