import logging
import os
import queue
import threading
import time
import uuid
from concurrent.futures import Future
from pathlib import Path
from typing import Dict, Optional, Tuple

from . import media, notify, render, storage
from .cleanup import job_workspace, release
from .config import EngineConfig
from .errors import QueueUninitialized
from .schemas import MODE_SIMPLE, Job, JobOutcome, JobRequest, MediaAsset, UploadResult
from .utils import ensure_dir


logger = logging.getLogger(__name__)

_STOP = object()


class JobManager:
    """
    Single-slot FIFO of compose jobs. One worker thread runs each job's whole
    pipeline (fetch, normalize, render, upload, notify, cleanup) before it takes
    the next one. submit() hands back a Future that resolves with the JobOutcome
    once the job's files are gone.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.jobs: Dict[str, Job] = {}
        self.q: "queue.Queue" = queue.Queue()
        self.thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        ensure_dir(self.config.public_dir)
        ensure_dir(self.config.work_root)

    @property
    def ready(self) -> bool:
        return self._ready.is_set() and self.thread is not None and self.thread.is_alive()

    def start(self) -> None:
        if self.thread and self.thread.is_alive():
            return
        self.thread = threading.Thread(target=self._run, name="compose-worker", daemon=True)
        self.thread.start()
        self._ready.set()

    def stop(self, timeout: Optional[float] = None) -> None:
        if not self.thread:
            return
        self._ready.clear()
        self.q.put(_STOP)
        self.thread.join(timeout)
        self.thread = None

    def submit(self, req: JobRequest) -> Tuple[Job, "Future[JobOutcome]"]:
        if not self.ready:
            raise QueueUninitialized()
        job = Job(id=f"job_{uuid.uuid4().hex[:10]}", request=req)
        future: "Future[JobOutcome]" = Future()
        self.jobs[job.id] = job
        self.q.put((job, future))
        logger.info(f"Queued {job.id} ({req.mode}, configId={req.correlation_id}); {self.q.qsize()} waiting")
        return job, future

    def run_sync(self, req: JobRequest, timeout: Optional[float] = None) -> JobOutcome:
        """Queue the request and block until its own pipeline has resolved."""
        job, future = self.submit(req)
        try:
            return future.result(timeout=timeout)
        finally:
            self.finalize(job)

    def finalize(self, job: Job) -> None:
        """Tell the worker the submitter is done with this job so the next one may start."""
        job.finalized.set()

    def get(self, job_id: str) -> Optional[Job]:
        return self.jobs.get(job_id)

    def _run(self) -> None:
        while True:
            item = self.q.get()
            if item is _STOP:
                return
            job, future = item
            if not future.set_running_or_notify_cancel():
                continue
            outcome = self._process(job)
            future.set_result(outcome)
            if not job.finalized.wait(self.config.finalize_timeout):
                logger.warning(f"{job.id} was not finalized within {self.config.finalize_timeout:g}s; moving on")

    def _process(self, job: Job) -> JobOutcome:
        job.status = "processing"
        job.updated_at = time.time()
        logger.info(f"Processing {job.id}")
        try:
            with job_workspace(self.config.work_root, job.id) as work_dir:
                job.work_dir = work_dir
                job.output_path = str(Path(self.config.public_dir) / job.request.output_file_name)
                try:
                    result = self._pipeline(job)
                finally:
                    release(job.output_path)
            outcome = JobOutcome(result=result)
            job.status = "completed"
        except Exception as e:
            logger.error(f"Job {job.id} failed: {e}")
            outcome = JobOutcome(error=e)
            job.status = "failed"
            job.error = str(e)
        job.request.storage_token = ""
        job.outcome = outcome
        job.updated_at = time.time()
        return outcome

    def _pipeline(self, job: Job) -> UploadResult:
        if job.request.mode == MODE_SIMPLE:
            self._render_simple(job)
        else:
            self._fetch_assets(job)
            self._normalize_assets(job)
            self._render_composite(job)
        logger.info(f"Rendered {job.output_path} (public at /public/{job.request.output_file_name} until cleanup)")

        result = storage.upload(job.output_path, job.request.storage_token, job.request.storage_folder_id, self.config)
        notify.send_callback(job.request.callback_url, job.request.correlation_id, result, timeout=self.config.callback_timeout)
        return result

    def _render_simple(self, job: Job) -> None:
        req = job.request
        video_path = media.download(req.video_url, os.path.join(job.work_dir, "video.mp4"), self.config)
        audio_path = media.download(req.audio_url, os.path.join(job.work_dir, "audio.mp3"), self.config)
        render.mux_video_audio(video_path, audio_path, job.output_path, self.config)

    def _fetch_assets(self, job: Job) -> None:
        job.assets = [MediaAsset(spec=spec, index=i) for i, spec in enumerate(job.request.media_assets)]
        for asset in job.assets:
            dest = os.path.join(job.work_dir, f"in_{asset.index:03d}.{asset.spec.extension}")
            asset.downloaded_path = media.download(asset.spec.url, dest, self.config)
        if job.request.audio_url:
            job.optional_audio_path = media.download(
                job.request.audio_url, os.path.join(job.work_dir, "audio.mp3"), self.config
            )

    def _normalize_assets(self, job: Job) -> None:
        norm_dir = os.path.join(job.work_dir, "normalized")
        for asset in job.assets:
            render.normalize_asset(asset, job.request.resolution, norm_dir, self.config)

    def _render_composite(self, job: Job) -> None:
        manifest = render.write_manifest(job.assets, os.path.join(job.work_dir, "manifest.txt"))
        render.render_manifest(
            manifest,
            job.output_path,
            job.request.resolution,
            audio_path=job.optional_audio_path,
            config=self.config,
            hold_last=render.trailing_still_duration(job.assets),
        )
