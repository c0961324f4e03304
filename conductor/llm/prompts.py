"""
Conductor - Prompt Templates

System prompts for the built-in agents and templates for planning,
revision and condition evaluation.
"""
from typing import Optional, Dict, Iterable


# Agent system prompts
SYSTEM_PROMPTS = {
    "chat": """You are a helpful AI assistant. Respond to user requests clearly and concisely.""",

    "task": """You are a task execution agent. Your role is to:
1. Understand the task provided by the user
2. Break it down into actionable steps if needed
3. Execute or provide guidance on how to complete the task
4. Provide clear, detailed responses about task completion

Be specific, actionable, and helpful in your responses.""",

    "research": """You are a research agent. Your role is to:
1. Help users gather and analyze information
2. Provide comprehensive research on topics
3. Synthesize information from multiple perspectives
4. Offer insights and recommendations based on research

Be thorough, analytical, and provide well-structured responses with clear reasoning.""",
}


# Braces belonging to the JSON example are doubled for str.format
PLANNING_PROMPT = """You are an AI assistant that creates detailed plans to accomplish user tasks.
Create a step-by-step plan in JSON format with the following structure:

{{
  "title": "Plan Title",
  "description": "Detailed description of what this plan will accomplish",
  "steps": [
    {{
      "title": "Step Title",
      "details": "Detailed description of what to do in this step",
      "agent_name": "agent_name_responsible_for_this_step"
    }}
  ]
}}

A step that must wait for something may instead be a monitoring step:
{{"title": "...", "details": "...", "agent_name": "...", "step_type": "SentinelPlanStep",
  "sleep_duration": 60, "condition": "text that becomes true when done, or a number of checks"}}

Available agents: {available_agents}

Guidelines:
1. Break down the task into logical, sequential steps
2. Assign each step to the most appropriate agent
3. Be specific and detailed in step descriptions
4. Ensure steps are actionable and measurable
5. Keep the plan focused and achievable
6. Maximum {max_steps} steps

User Task: {user_input}

Respond ONLY with the JSON plan, no additional text."""


REVISION_PROMPT = """You are revising an existing plan based on user feedback. Here is the current plan:

{current_plan}

User Feedback: {feedback}

Please revise the plan to address the feedback. Respond ONLY with the updated JSON plan.

Available agents: {available_agents}
Maximum {max_steps} steps."""


CONDITION_PROMPT = """You are evaluating whether a condition has been met for a monitoring task.

Condition to check: {condition}
Context: {context}

Evaluate whether the condition is satisfied. Respond with only 'true' if the condition is met, or 'false' if it is not met.

Your response must be exactly 'true' or 'false' with no additional text."""


def _agent_list(agents: Optional[Iterable[str]]) -> str:
    names = sorted(agents or [])
    return ", ".join(names) if names else "any"


class PromptBuilder:
    """
    Builds prompts from templates.
    """

    def __init__(
        self,
        system_prompts: Optional[Dict[str, str]] = None,
        planning_template: Optional[str] = None,
    ):
        """
        Initialize PromptBuilder.

        Args:
            system_prompts: Custom agent system prompts
            planning_template: Override for PLANNING_PROMPT (same placeholders)
        """
        self._system_prompts = dict(system_prompts or SYSTEM_PROMPTS)
        self._planning_template = planning_template or PLANNING_PROMPT

    def get_system_prompt(self, agent_type: str = "chat") -> str:
        """Get system prompt for an agent type, falling back to chat."""
        return self._system_prompts.get(agent_type, self._system_prompts["chat"])

    def add_system_prompt(self, name: str, prompt: str) -> None:
        """Add custom system prompt."""
        self._system_prompts[name] = prompt

    def planning(
        self,
        user_input: str,
        available_agents: Optional[Iterable[str]] = None,
        max_steps: int = 20,
    ) -> str:
        """Build the initial plan generation prompt."""
        return self._planning_template.format(
            user_input=user_input,
            available_agents=_agent_list(available_agents),
            max_steps=max_steps,
        )

    def revision(
        self,
        current_plan: str,
        feedback: str,
        available_agents: Optional[Iterable[str]] = None,
        max_steps: int = 20,
    ) -> str:
        """
        Build the plan revision prompt.

        Args:
            current_plan: JSON text of the plan being revised
            feedback: What went wrong or what to change
        """
        return REVISION_PROMPT.format(
            current_plan=current_plan,
            feedback=feedback,
            available_agents=_agent_list(available_agents),
            max_steps=max_steps,
        )

    def condition(self, condition: str, step_title: str, iteration: int) -> str:
        """Build the sentinel condition check prompt."""
        return CONDITION_PROMPT.format(
            condition=condition,
            context=f"Step: {step_title}, Iteration: {iteration}",
        )


# Global instance
prompt_builder = PromptBuilder()
