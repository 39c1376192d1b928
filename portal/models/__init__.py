from .user import User, RefreshToken
from .profile import Profile, OnboardingStep, Sex
from .doctor import DoctorProfile
from .patient import PatientProfile, CareLink, CareLinkStatus, PatientNote
from .appointment import Appointment, AppointmentStatus, AppointmentMode
from .document import Document, DocumentCategory, Folder, DocumentShare
from .chat import Conversation, ConversationParticipant, Message
from .notification import Notification, NotificationSettings
