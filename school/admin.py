from django.contrib import admin

from .models import Branch, ClassSubject, SchoolClass, Staff, Student, Term

admin.site.register(Branch)
admin.site.register(Staff)
admin.site.register(SchoolClass)
admin.site.register(ClassSubject)
admin.site.register(Student)
admin.site.register(Term)
