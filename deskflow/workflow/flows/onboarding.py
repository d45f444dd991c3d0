from deskflow.core.intents import ONBOARDING
from deskflow.workflow.base import (
    FlowDefinition, DataCollectionStep, ChoiceStep, ConfirmationStep,
    ActionExecutionStep, SummaryStep, FieldSpec, ChoiceOption, ActionSpec,
)

DEPARTMENTS = [
    ChoiceOption(label="Engineering", value="engineering"),
    ChoiceOption(label="Human Resources", value="hr"),
    ChoiceOption(label="Finance", value="finance"),
    ChoiceOption(label="Operations", value="operations"),
    ChoiceOption(label="Legal", value="legal"),
    ChoiceOption(label="Other", value="other"),
]

WORK_LOCATIONS = [
    ChoiceOption(label="Headquarters - DC", value="hq_dc"),
    ChoiceOption(label="Regional Office - Atlanta", value="atlanta"),
    ChoiceOption(label="Regional Office - Chicago", value="chicago"),
    ChoiceOption(label="Regional Office - Denver", value="denver"),
    ChoiceOption(label="Regional Office - Seattle", value="seattle"),
    ChoiceOption(label="Remote/Telework", value="remote"),
]

ONBOARDING_FLOW = FlowDefinition(
    intent=ONBOARDING,
    name="Employee Onboarding",
    welcome=(
        "Welcome! I'll help set up onboarding for your new team member. "
        "I can open the HR case, request IT equipment and notify the manager in one conversation."
    ),
    steps=[
        DataCollectionStep(
            key="department",
            name="Department",
            content="Which department will the new employee be joining?",
            fields=[
                FieldSpec(name="department", label="Department", type="choice",
                          prompt="Which department will the new employee be joining?", choices=DEPARTMENTS),
            ],
        ),
        DataCollectionStep(
            key="employee_details",
            name="New Hire Details",
            content="I'll need a few details to set everything up correctly.",
            fields=[
                FieldSpec(name="employee_name", label="Full Name", prompt="What is the new employee's full legal name?"),
                FieldSpec(name="job_title", label="Job Title", prompt="What is their job title?"),
                FieldSpec(name="start_date", label="Start Date", type="date", prompt="When is their official start date?"),
                FieldSpec(name="work_location", label="Work Location", type="choice",
                          prompt="Where will they primarily be working?", choices=WORK_LOCATIONS),
                FieldSpec(name="manager_name", label="Manager Name", required=False,
                          prompt="Who will be their direct manager? (Optional)"),
            ],
        ),
        ChoiceStep(
            key="equipment",
            name="Equipment",
            content="What equipment package should IT prepare?",
            field="equipment",
            choices=[
                ChoiceOption(label="Standard Laptop", value="standard_laptop"),
                ChoiceOption(label="Developer Workstation", value="developer_workstation"),
                ChoiceOption(label="Laptop + Mobile Device", value="laptop_mobile"),
                ChoiceOption(label="No Equipment Needed", value="none"),
            ],
        ),
        ConfirmationStep(
            key="confirm",
            name="Confirm Details",
            content="Let me confirm the information I've collected.",
            action_title="Confirm Onboarding Request",
        ),
        ActionExecutionStep(
            key="execute",
            name="Execute Actions",
            content="Processing the onboarding now.",
            actions=[
                ActionSpec(id="create_hr_case", type="hr", title="HR Service Case",
                           description="Employee onboarding case", table="hr_case"),
                ActionSpec(id="create_it_request", type="it", title="IT Service Request",
                           description="Technology setup", table="sc_request"),
                ActionSpec(id="create_manager_task", type="manager", title="Manager Notification",
                           description="Manager onboarding tasks", table="task"),
            ],
        ),
        SummaryStep(
            key="summary",
            name="Complete",
            content="Onboarding is complete! All records have been created.",
            outcome="request_created",
        ),
    ],
)
