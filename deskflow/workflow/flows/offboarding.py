from deskflow.core.intents import OFFBOARDING
from deskflow.workflow.base import (
    FlowDefinition, ConditionalRoutingStep, DataCollectionStep, ChoiceStep, ConfirmationStep,
    ActionExecutionStep, SummaryStep, FieldSpec, ChoiceOption, ActionSpec,
)

OFFBOARDING_FLOW = FlowDefinition(
    intent=OFFBOARDING,
    name="Employee and Contractor Offboarding",
    welcome="I'll help process this departure securely and in compliance with all requirements.",
    steps=[
        ConditionalRoutingStep(
            key="departure_type",
            name="Departure Type",
            content="Who is leaving the agency?",
            field="departure_type",
            choices=[
                ChoiceOption(label="An Employee", value="employee"),
                ChoiceOption(label="A Contractor", value="contractor"),
            ],
            routes={"employee": "employee_details", "contractor": "contractor_details"},
        ),
        DataCollectionStep(
            key="employee_details",
            name="Employee Details",
            content="I need a few details about the departing employee.",
            fields=[
                FieldSpec(name="employee_name", label="Employee Name", prompt="What is the employee's full name?"),
                FieldSpec(name="last_day", label="Last Working Day", type="date", prompt="When is their last working day?"),
                FieldSpec(name="reason", label="Departure Reason", type="choice", prompt="What is the reason for departure?",
                          choices=[
                              ChoiceOption(label="Resignation", value="resignation"),
                              ChoiceOption(label="Retirement", value="retirement"),
                              ChoiceOption(label="Transfer", value="transfer"),
                              ChoiceOption(label="Termination", value="termination"),
                          ]),
            ],
            next_step="equipment_return",
        ),
        DataCollectionStep(
            key="contractor_details",
            type="identity_verification",
            name="Contractor Verification",
            content="I need to verify the contractor's details.",
            fields=[
                FieldSpec(name="contractor_name", label="Contractor Name", prompt="What is the contractor's full name?"),
                FieldSpec(name="contractor_id", label="Contractor ID", prompt="What is their contractor ID or badge number?"),
                FieldSpec(name="end_date", label="Last Working Day", type="date", prompt="When is their last working day?"),
                FieldSpec(name="requesting_manager", label="Requesting Manager", prompt="What is your name (the requesting manager)?"),
                FieldSpec(name="reason_code", label="Departure Reason", type="choice", prompt="What is the reason for departure?",
                          choices=[
                              ChoiceOption(label="Contract End - Normal", value="contract_end_normal"),
                              ChoiceOption(label="Contract End - Early", value="contract_end_early"),
                              ChoiceOption(label="Contract Termination - Performance", value="termination_performance"),
                              ChoiceOption(label="Contract Termination - Security", value="termination_security"),
                              ChoiceOption(label="Contractor Resignation", value="resignation"),
                              ChoiceOption(label="Project Completion", value="project_completion"),
                          ]),
            ],
        ),
        ChoiceStep(
            key="equipment_return",
            name="Equipment Return",
            content="Does the departing person have agency equipment to return?",
            field="has_equipment",
            choices=[
                ChoiceOption(label="Yes, schedule a return", value="yes"),
                ChoiceOption(label="No equipment", value="no"),
            ],
        ),
        ConfirmationStep(
            key="confirm",
            name="Confirm Details",
            content="Please confirm the departure details.",
            action_title="Confirm Departure",
        ),
        ActionExecutionStep(
            key="execute",
            name="Secure Execution",
            content="Executing the departure process.",
            actions=[
                ActionSpec(id="deactivate_accounts", type="security", title="Account Deactivation",
                           description="Disabling all accounts"),
                ActionSpec(id="revoke_access", type="security", title="Access Revocation",
                           description="Removing all permissions"),
                ActionSpec(id="create_hr_case", type="hr", title="HR Departure Case",
                           description="Departure documentation", table="hr_case"),
            ],
        ),
        SummaryStep(
            key="summary",
            name="Complete",
            content="The departure has been processed. All access has been revoked and an audit trail generated.",
            outcome="case_created",
        ),
    ],
)
