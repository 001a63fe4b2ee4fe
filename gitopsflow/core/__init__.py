"""Pipeline core: run state machine, descriptor updates, runner and queue."""
