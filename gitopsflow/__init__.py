"""gitopsflow: build-test-tag-publish pipeline runner for GitOps delivery.

One trigger event (a push or a pull request) drives one Pipeline Run:
  - build the container image and tag it ``latest``
  - start it, wait for it to settle, probe ``GET /`` for HTTP 200
  - always tear the test container down
  - point the Deployment Descriptor at the commit tag, commit and push it
  - publish the image under ``latest`` and the commit tag

A reconciliation system (e.g. Argo CD) watching the descriptor does the
actual deployment; this package only guarantees the descriptor never
points at an image that failed the probe.
"""

__version__ = "0.1.0"
__description__ = "Build-test-tag-publish pipeline runner for GitOps delivery"

from gitopsflow.core.runner import PipelineRunner
from gitopsflow.core.run_queue import RunQueue
from gitopsflow.cli.app import app as cli

__all__ = ["PipelineRunner", "RunQueue", "cli", "__version__"]
