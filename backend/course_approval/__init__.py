"""Course submission, AI evaluation, and multi-stage approval backend."""
