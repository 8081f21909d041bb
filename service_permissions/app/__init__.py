"""
Permissions package.

This package decides whether a user may perform an action given the
permissions granted to them directly and through group membership. It
provides:

- app.main: Composition root that wires config, logging, metrics and the
  condition registry into an evaluator.
- app.evaluator: Grant model, effective chain construction, condition
  evaluation and the allow/deny decision.

Guidelines:
- The engine is stateless; grant data is resolved by the caller.
- A denial is a value with a reason, never an exception (see the guard
  for the raising variant).
- Keep evaluation deterministic: tests pass a simulated time and date.
"""
