"""Civil Service Exam reviewer: exam engine, backend API and client."""
