#!/usr/bin/env python3
"""
Demo Data Script

Creates a TPO, a company, two students, one approved job and a small
JavaScript question set, going through the same services the API uses.

Usage: python scripts/seed_demo_data.py
Logins (password for all): demo-pass-123
"""
import sys
from datetime import datetime, timedelta, timezone
sys.path.insert(0, '.')

from app.core.logging import setup_logging
from app.db.mongodb import init_mongo_indexes
from app.core.errors import StateConflictError
from app.schemas.schemas import (
    JobCreate, JobTimeline, QuestionCreate, QuestionSetCreate, RegisterRequest
)
from app.services.approval_service import JobApprovalService
from app.services.identity_service import IdentityService
from app.services.job_service import JobService
from app.services.mongo_service import to_object_id
from app.services.quiz_service import QuizService

PASSWORD = "demo-pass-123"

USERS = [
    {"name": "Placement Office", "email": "tpo@demo.edu", "role": "tpo",
     "institute_name": "Demo Institute of Technology", "contact_number": "9000000001"},
    {"name": "Acme Software", "email": "hr@acme-software.com", "role": "company",
     "hr_contact": "Priya Nair", "contact_number": "9000000002", "industry": "Software"},
    {"name": "Asha Kumar", "email": "asha@demo.edu", "role": "student",
     "roll_number": "CS2021001", "branch": "CSE", "graduation_year": 2025},
    {"name": "Rahul Verma", "email": "rahul@demo.edu", "role": "student",
     "roll_number": "EC2021014", "branch": "ECE", "graduation_year": 2025},
]

QUESTIONS = [
    ("What is the output of console.log(typeof null)?",
     {"A": "null", "B": "object", "C": "undefined", "D": "number"}, "B", "easy", "JavaScript Basics"),
    ("Which method adds an element at the end of an array?",
     {"A": "push()", "B": "pop()", "C": "shift()", "D": "unshift()"}, "A", "easy", "Array Methods"),
    ("What does the 'let' keyword declare?",
     {"A": "A constant", "B": "A block-scoped variable", "C": "A function-scoped variable",
      "D": "A global variable"}, "B", "medium", "ES6 Features"),
]


def main():
    setup_logging()
    init_mongo_indexes()
    identity = IdentityService()

    profiles = {}
    for data in USERS:
        try:
            user = identity.register(RegisterRequest(password=PASSWORD, **data))
            print(f"✅ Registered {data['role']}: {data['email']}")
        except StateConflictError:
            print(f"⚠️  {data['email']} already exists, skipping seed")
            return
        profiles[data["email"]] = user

    tpo_id = to_object_id(profiles["tpo@demo.edu"]["profile_id"])
    company_id = to_object_id(profiles["hr@acme-software.com"]["profile_id"])

    now = datetime.now(timezone.utc)
    job = JobService().create_job(company_id, JobCreate(
        title="Graduate Software Engineer",
        description="Build and maintain backend services.",
        location="Bengaluru",
        package=12,
        eligibility_criteria=["CSE", "ECE", "CGPA >= 7"],
        deadline=now + timedelta(days=14),
        timeline=JobTimeline(online_test=now + timedelta(days=21), interview=now + timedelta(days=28)),
    ))
    JobApprovalService().approve(job["_id"], tpo_id)
    print(f"✅ Job created and approved: {job['title']}")

    quiz = QuizService()
    question_set = quiz.create_question_set(tpo_id, QuestionSetCreate(
        title="JavaScript Fundamentals Test",
        description="JavaScript basics, arrays and ES6",
        maximum_marks=15,
        marks_per_question=5,
        total_questions=len(QUESTIONS),
        time_limit=30,
    ))
    for text, options, answer, difficulty, category in QUESTIONS:
        quiz.create_question(tpo_id, QuestionCreate(
            question_text=text, options=options, correct_answer=answer, marks=5,
            difficulty=difficulty, category=category, question_set_id=question_set["_id"],
        ))
    print(f"✅ Question set created: {question_set['title']} ({len(QUESTIONS)} questions)")

    print(f"\nAll demo users use password: {PASSWORD}")


if __name__ == "__main__":
    main()
