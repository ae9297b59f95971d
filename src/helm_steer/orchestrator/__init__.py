"""Orchestrator module for release reconciliation and execution."""

from helm_steer.orchestrator.reconciler import (
    Action,
    ReconciliationResult,
    Reconciler,
    ReleaseChange,
    UnmanagedPolicy
)
from helm_steer.orchestrator.dependency_graph import DependencyGraph, DependencyNode
from helm_steer.orchestrator.operations import (
    Operation,
    OperationBuilder,
    UndoableOperation
)
from helm_steer.orchestrator.rollback import RollbackManager, RollbackResult, UndoStack
from helm_steer.orchestrator.executor import (
    ExecutionResult,
    ExecutionStatus,
    OperationExecutor,
    OperationResult,
    ProgressCallback
)
from helm_steer.orchestrator.orchestrator import SteerOrchestrator, SteerPlan, steer

__all__ = [
    # Reconciliation
    'Action',
    'ReconciliationResult',
    'Reconciler',
    'ReleaseChange',
    'UnmanagedPolicy',

    # Dependency graph
    'DependencyGraph',
    'DependencyNode',

    # Operations
    'Operation',
    'OperationBuilder',
    'UndoableOperation',

    # Execution
    'ExecutionResult',
    'ExecutionStatus',
    'OperationExecutor',
    'OperationResult',
    'ProgressCallback',

    # Rollback
    'RollbackManager',
    'RollbackResult',
    'UndoStack',

    # Main orchestrator
    'SteerOrchestrator',
    'SteerPlan',
    'steer',
]
