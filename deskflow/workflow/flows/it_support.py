from deskflow.core.intents import IT_SUPPORT
from deskflow.workflow.base import (
    FlowDefinition, ChoiceStep, DataCollectionStep, KnownIssueCheckStep, ConfirmationStep,
    ActionExecutionStep, SummaryStep, FieldSpec, ChoiceOption, ActionSpec,
)

IT_SUPPORT_FLOW = FlowDefinition(
    intent=IT_SUPPORT,
    name="IT Issue Resolution",
    welcome="I'll help diagnose and resolve your technical issue.",
    steps=[
        ChoiceStep(
            key="category",
            name="Issue Category",
            content="What kind of technical issue are you experiencing?",
            field="category",
            choices=[
                ChoiceOption(label="VPN Connectivity", value="vpn"),
                ChoiceOption(label="Email Issues", value="email"),
                ChoiceOption(label="Software Problem", value="software"),
                ChoiceOption(label="Hardware Issue", value="hardware"),
                ChoiceOption(label="Access / Login", value="access"),
                ChoiceOption(label="Something Else", value="other"),
            ],
        ),
        DataCollectionStep(
            key="issue_description",
            name="Problem Description",
            content="Please describe the problem.",
            fields=[
                FieldSpec(name="issue_description", label="Problem Description",
                          prompt="Please describe the problem in detail."),
                FieldSpec(name="error_message", label="Error Message", required=False,
                          prompt="Any specific error messages? (Optional)"),
            ],
        ),
        KnownIssueCheckStep(
            key="known_issue_check",
            name="Known Issue Check",
            content="Let me check whether this is a known issue.",
        ),
        DataCollectionStep(
            key="diagnostics",
            name="Diagnostics",
            content="Let me gather a few more details about your issue.",
            fields=[
                FieldSpec(name="when_started", label="When Started", type="choice", prompt="When did this problem start?",
                          choices=[
                              ChoiceOption(label="Today", value="today"),
                              ChoiceOption(label="Yesterday", value="yesterday"),
                              ChoiceOption(label="This week", value="this_week"),
                              ChoiceOption(label="Been ongoing", value="ongoing"),
                          ]),
                FieldSpec(name="frequency", label="Frequency", type="choice", prompt="How often does it happen?",
                          choices=[
                              ChoiceOption(label="Constant", value="constant"),
                              ChoiceOption(label="Intermittent", value="intermittent"),
                              ChoiceOption(label="First time", value="first_time"),
                          ]),
                FieldSpec(name="steps_tried", label="Steps Tried", required=False,
                          prompt="What have you already tried? (Optional)"),
            ],
        ),
        ChoiceStep(
            key="urgency",
            name="Urgency",
            content="How urgent is this for your work?",
            field="urgency",
            choices=[
                ChoiceOption(label="Blocking my work", value="high"),
                ChoiceOption(label="Slowing me down", value="medium"),
                ChoiceOption(label="Minor inconvenience", value="low"),
            ],
        ),
        ConfirmationStep(
            key="confirm",
            name="Confirm Ticket",
            content="Here is the ticket I'm about to open.",
            action_title="Confirm IT Support Ticket",
        ),
        ActionExecutionStep(
            key="execute",
            name="Create Incident",
            content="Creating your IT support ticket.",
            actions=[
                ActionSpec(id="create_incident", type="it", title="IT Support Incident",
                           description="Incident with diagnostics", table="incident"),
            ],
        ),
        SummaryStep(
            key="summary",
            name="Ticket Created",
            content="Your IT support ticket has been created and assigned to the appropriate team.",
            outcome="case_created",
        ),
    ],
)
