"""
Semaphore 작업 상태 폴링 (상태 머신)
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Semaphore 가 보고하는 종료 상태
TERMINAL_SUCCESS = 'success'
TERMINAL_ERROR = 'error'


class JobState:
    """폴러 상태"""
    CREATED = 'created'
    POLLING = 'polling'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    TIMED_OUT = 'timed_out'
    CANCELLED = 'cancelled'

    TERMINAL = (SUCCEEDED, FAILED, TIMED_OUT, CANCELLED)


@dataclass
class PollResult:
    """폴링 결과"""
    task_id: Any
    state: str
    status: Optional[Dict[str, Any]] = None
    polls: int = 0
    elapsed: float = 0.0
    history: list = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == JobState.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'task_id': self.task_id,
            'state': self.state,
            'status': self.status,
            'polls': self.polls,
            'elapsed': round(self.elapsed, 3)
        }


class JobPoller:
    """작업 하나를 종료 상태까지 폴링

    폴러마다 자신의 타이머(threading.Event)를 가지므로 다른 요청의
    폴링과 간섭하지 않는다. 취소되어도 Semaphore 쪽 작업은 계속 실행된다.
    """

    def __init__(self, client, interval: float = 3.0, timeout: Optional[float] = None,
                 stop_event: Optional[threading.Event] = None,
                 on_poll: Optional[Callable[[int, Dict[str, Any]], None]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.client = client
        self.interval = max(float(interval), 0.0)
        self.timeout = timeout if timeout else None
        self.stop_event = stop_event or threading.Event()
        self.on_poll = on_poll
        self.clock = clock
        self.state = JobState.CREATED

    def stop(self):
        """폴링 중단 요청"""
        self.stop_event.set()

    def run(self, task_id) -> PollResult:
        """종료 상태(success / error), 타임아웃, 취소 중 하나가 될 때까지 폴링"""
        started = self.clock()
        deadline = started + self.timeout if self.timeout is not None else None
        result = PollResult(task_id=task_id, state=JobState.POLLING)
        self.state = JobState.POLLING
        logger.info(f"⏳ 작업 폴링 시작: task={task_id} (간격 {self.interval}s, 제한 {self.timeout or '없음'})")

        while True:
            if self.stop_event.is_set():
                return self._finish(result, JobState.CANCELLED, started)

            status = self.client.get_task_status(task_id)
            result.polls += 1
            result.status = status
            value = status.get('status')
            if not result.history or result.history[-1] != value:
                result.history.append(value)

            if self.on_poll:
                self.on_poll(result.polls, status)

            if value == TERMINAL_SUCCESS:
                return self._finish(result, JobState.SUCCEEDED, started)
            if value == TERMINAL_ERROR:
                return self._finish(result, JobState.FAILED, started)

            wait = self.interval
            if deadline is not None:
                remaining = deadline - self.clock()
                if remaining <= 0:
                    return self._finish(result, JobState.TIMED_OUT, started)
                wait = min(wait, remaining)

            # 대기 중 stop() 이 호출되면 즉시 깨어남
            if self.stop_event.wait(wait):
                return self._finish(result, JobState.CANCELLED, started)

            if deadline is not None and self.clock() >= deadline:
                return self._finish(result, JobState.TIMED_OUT, started)

    def _finish(self, result: PollResult, state: str, started: float) -> PollResult:
        self.state = state
        result.state = state
        result.elapsed = self.clock() - started
        status_value = result.status.get('status') if result.status else None
        if state == JobState.SUCCEEDED:
            logger.info(f"✅ 작업 완료: task={result.task_id} ({result.polls}회 폴링)")
        elif state == JobState.FAILED:
            logger.warning(f"❌ 작업 실패: task={result.task_id} status={status_value}")
        else:
            logger.warning(f"⚠️ 작업 폴링 종료 ({state}): task={result.task_id} 마지막 상태={status_value}")
        return result
