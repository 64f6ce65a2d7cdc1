from dodgeboard.modules.submission.service import SubmissionResult, SubmissionService

__all__ = ["SubmissionResult", "SubmissionService"]
