# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Invocation results returned by WorkflowEngine.invoke / resume.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class ActionDescriptor(BaseModel):
    """What the caller must do (and supply) before resuming"""
    type: str
    description: str
    instructions: str
    required_output_names: List[str]
    available_tool_names: Optional[List[str]] = None
    context: Optional[Dict[str, Any]] = None


class StepError(BaseModel):
    step: str
    error: str


class PausedResult(BaseModel):
    status: Literal["awaiting_action"] = "awaiting_action"
    workflow_id: str
    token: str
    completed_steps: List[str] = Field(default_factory=list)
    action: ActionDescriptor


class CompletedResult(BaseModel):
    status: Literal["completed"] = "completed"
    workflow_id: str
    success: bool
    completed_steps: List[str] = Field(default_factory=list)
    failed_step: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    errors: Optional[List[StepError]] = None


WorkflowResult = Union[PausedResult, CompletedResult]


def format_result(workflow, result: WorkflowResult) -> str:
    """Format a workflow result for display to the calling agent"""
    lines: List[str] = [f"Workflow: {workflow.name} ({workflow.id})", f"Version: {workflow.version}", ""]

    if isinstance(result, PausedResult):
        action = result.action
        lines.extend(["⏸️  Workflow Paused - Action Required", ""])
        if result.completed_steps:
            lines.append("✓ Completed steps:")
            lines.extend(f"  - {step}" for step in result.completed_steps)
            lines.append("")

        lines.extend([f"📋 Required Action: {action.description}", "", "Instructions:", action.instructions, ""])

        if action.available_tool_names:
            lines.extend([f"Available Tools: {', '.join(action.available_tool_names)}", ""])

        lines.extend([
            f"Required Outputs: {', '.join(action.required_output_names)}",
            "",
            f"Resume Token: {result.token}",
            "",
            "After completing the action, call resume_workflow with the resume token and results.",
        ])
        return "\n".join(lines)

    if not result.success:
        lines.extend(["❌ Workflow Failed", ""])
        if result.completed_steps:
            lines.append("✓ Completed steps:")
            lines.extend(f"  - {step}" for step in result.completed_steps)
            lines.append("")
        if result.failed_step:
            lines.append(f"✗ Failed at step: {result.failed_step}")
        if result.errors:
            lines.extend(["", "Errors:"])
            lines.extend(f"  [{err.step}] {err.error}" for err in result.errors)
        lines.extend(["", f"Error: {result.error}"])
        return "\n".join(lines)

    lines.extend(["✅ Workflow Completed Successfully", ""])
    if result.completed_steps:
        lines.append("Completed steps:")
        lines.extend(f"  ✓ {step}" for step in result.completed_steps)
        lines.append("")

    shown = {key: value for key, value in result.data.items() if value is not None}
    if shown:
        lines.append("Results:")
        lines.extend(f"  {key}: {value}" for key, value in shown.items())

    return "\n".join(lines)
