"""
서비스 레이어 패키지
"""
from .playbook_builder import PlaybookBuilder, ReplicationPlan, plan_replication, render_playbook
from .playbook_store import PlaybookStore, PlaybookLocator
from .semaphore_client import SemaphoreClient
from .job_poller import JobPoller, JobState, PollResult
from .provisioning_service import ProvisioningService

__all__ = [
    'PlaybookBuilder', 'ReplicationPlan', 'plan_replication', 'render_playbook',
    'PlaybookStore', 'PlaybookLocator',
    'SemaphoreClient',
    'JobPoller', 'JobState', 'PollResult',
    'ProvisioningService'
]
