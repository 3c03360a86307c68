from models.classroom import Classroom
from models.generated_timetable import GeneratedTimetable
from models.generation_conditions import GenerationConditions
from models.school_settings import SchoolSettings
from models.subject import Subject
from models.teacher import Teacher
from models.timetable_slot import TimetableSlotEntry

__all__ = [
	"Classroom",
	"GeneratedTimetable",
	"GenerationConditions",
	"SchoolSettings",
	"Subject",
	"Teacher",
	"TimetableSlotEntry",
]
